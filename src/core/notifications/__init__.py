# src/core/notifications/__init__.py
"""
Модуль уведомлений пользователей.
"""

from src.core.notifications.repository import NotificationCreate, NotificationRepository

__all__ = ["NotificationCreate", "NotificationRepository"]
