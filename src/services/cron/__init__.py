# src/services/cron/__init__.py
"""
Lifecycle API: триггеры внешнего планировщика и смена статусов поездок.
"""

from src.services.cron.app import app, create_app

__all__ = ["app", "create_app"]
