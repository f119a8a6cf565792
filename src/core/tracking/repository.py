# src/core/tracking/repository.py
"""
Репозиторий геопозиций водителей (таблица driver_locations).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from src.common.logger import log_error, log_warning
from src.core.tracking.models import DriverPosition
from src.infra.database import DatabaseManager


class DriverLocationRepository:
    """Репозиторий позиций водителей."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def fetch_positions(self, limit: int = 500) -> list[DriverPosition]:
        """
        Возвращает до limit последних позиций.
        Ошибки запроса пробрасываются: решение о деградации принимает трекер.
        Невалидные строки пропускаются.
        """
        rows = await self._db.fetch(
            """
            SELECT driver_id, lat, lng, updated_at
            FROM driver_locations
            ORDER BY updated_at DESC
            LIMIT $1
            """,
            limit,
        )

        positions: list[DriverPosition] = []
        for row in rows:
            try:
                positions.append(DriverPosition.model_validate(dict(row)))
            except ValidationError as e:
                await log_warning(f"Пропущена невалидная позиция {row.get('driver_id')}: {e}")
        return positions

    async def get_position(self, driver_id: str) -> Optional[DriverPosition]:
        """Возвращает позицию водителя или None."""
        try:
            row = await self._db.fetchrow(
                "SELECT driver_id, lat, lng, updated_at FROM driver_locations WHERE driver_id = $1",
                driver_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения позиции водителя {driver_id}: {e}")
            return None

        if row is None:
            return None
        return DriverPosition.model_validate(dict(row))

    async def upsert_position(
        self,
        driver_id: str,
        latitude: float,
        longitude: float,
        updated_at: datetime | None = None,
    ) -> DriverPosition:
        """Создаёт или перезаписывает позицию водителя."""
        row = await self._db.fetchrow(
            """
            INSERT INTO driver_locations (driver_id, lat, lng, updated_at)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (driver_id) DO UPDATE
                SET lat = EXCLUDED.lat,
                    lng = EXCLUDED.lng,
                    updated_at = EXCLUDED.updated_at
            RETURNING driver_id, lat, lng, updated_at
            """,
            driver_id,
            latitude,
            longitude,
            updated_at or datetime.now(timezone.utc),
        )
        return DriverPosition.model_validate(dict(row))

    async def delete_position(self, driver_id: str) -> Optional[DriverPosition]:
        """Удаляет позицию. Возвращает удалённую строку или None."""
        row = await self._db.fetchrow(
            """
            DELETE FROM driver_locations
            WHERE driver_id = $1
            RETURNING driver_id, lat, lng, updated_at
            """,
            driver_id,
        )
        if row is None:
            return None
        return DriverPosition.model_validate(dict(row))
