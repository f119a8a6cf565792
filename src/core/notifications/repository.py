# src/core/notifications/repository.py
"""
Репозиторий пользовательских уведомлений (таблица notifications).
Уведомления создаются как побочный эффект смены статуса поездки или заказа.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from src.common.constants import NotificationType

if TYPE_CHECKING:
    from asyncpg import Connection

    from src.infra.database import DatabaseManager


@dataclass
class NotificationCreate:
    """Данные нового уведомления."""
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)


class NotificationRepository:
    """Репозиторий уведомлений."""

    def __init__(self, db: "DatabaseManager") -> None:
        self._db = db

    async def insert(
        self,
        notification: NotificationCreate,
        conn: Optional["Connection"] = None,
    ) -> int:
        """
        Сохраняет уведомление.

        Args:
            notification: Данные уведомления
            conn: Соединение открытой транзакции. Если не передано,
                  запрос выполняется через пул.

        Returns:
            ID созданного уведомления
        """
        query = """
            INSERT INTO notifications (user_id, type, title, message, data)
            VALUES ($1, $2, $3, $4, $5::jsonb)
            RETURNING id
        """
        args = (
            notification.user_id,
            NotificationType(notification.type).value,
            notification.title,
            notification.message,
            json.dumps(notification.data, ensure_ascii=False, default=str),
        )

        if conn is not None:
            return await conn.fetchval(query, *args)
        return await self._db.fetchval(query, *args)
