# src/services/__init__.py
"""
HTTP-сервисы приложения.

Сервисы:
- location_ingest: приём координат водителей, публикация изменений для трекера
- cron: триггеры внешнего планировщика и смена статусов поездок
"""

__all__: list[str] = []
