# src/core/__init__.py
"""
Доменный слой (Core Domain).
Трекинг водителей, жизненный цикл поездок и заказов, уведомления.
"""
