# src/services/location_ingest/service.py
"""
Бизнес-логика приёма геолокации водителей.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from src.common.constants import ChangeEventType
from src.common.logger import log_error
from src.core.tracking.models import DriverPosition

if TYPE_CHECKING:
    from src.core.tracking.repository import DriverLocationRepository
    from src.infra.redis_client import RedisClient


class LocationIngestService:
    """
    Сервис приёма и обработки геолокации водителей.

    Ответственности:
    - Валидация координат
    - Upsert строки driver_locations
    - Публикация события изменения в канал трекера (Redis Pub/Sub)
    """

    def __init__(
        self,
        repository: "DriverLocationRepository",
        redis: Optional["RedisClient"] = None,
        channel: str = "driver_locations:changes",
    ) -> None:
        """
        Args:
            repository: Репозиторий позиций
            redis: Клиент Redis. None, если трекер слушает PostgreSQL напрямую
            channel: Канал событий изменения
        """
        self._repository = repository
        self._redis = redis
        self._channel = channel

        # Статистика
        self._total_updates = 0
        self._total_removals = 0
        self._updates_per_driver: dict[str, int] = {}

    async def update_location(
        self,
        driver_id: str,
        lat: Any,
        lng: Any,
        timestamp: datetime | None = None,
    ) -> DriverPosition:
        """
        Обновить геолокацию водителя.

        1. Валидация координат
        2. Upsert в driver_locations
        3. Публикация UPDATE события

        Raises:
            ValueError: невалидные координаты
        """
        position = DriverPosition.model_validate({
            "driver_id": driver_id,
            "lat": lat,
            "lng": lng,
            "updated_at": timestamp or datetime.now(timezone.utc),
        })

        stored = await self._repository.upsert_position(
            position.driver_id,
            position.latitude,
            position.longitude,
            position.updated_at,
        )

        await self._publish(ChangeEventType.UPDATE, new=stored.to_wire())

        self._total_updates += 1
        self._updates_per_driver[stored.driver_id] = self._updates_per_driver.get(stored.driver_id, 0) + 1
        return stored

    async def remove_driver(self, driver_id: str) -> bool:
        """
        Удалить позицию водителя (ушёл offline).

        Returns:
            False если позиции не было
        """
        removed = await self._repository.delete_position(driver_id)
        if removed is None:
            return False

        await self._publish(ChangeEventType.DELETE, old={"driver_id": removed.driver_id})
        self._total_removals += 1
        return True

    async def get_driver_location(self, driver_id: str) -> Optional[DriverPosition]:
        """Последняя известная позиция водителя."""
        return await self._repository.get_position(driver_id)

    async def list_locations(self, limit: int = 500) -> list[DriverPosition]:
        """Последние позиции водителей. Ошибка чтения -> пустой список."""
        try:
            return await self._repository.fetch_positions(limit=limit)
        except Exception as e:
            await log_error(f"Ошибка чтения позиций водителей: {e}")
            return []

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        return {
            "total_updates": self._total_updates,
            "total_removals": self._total_removals,
            "unique_drivers": len(self._updates_per_driver),
        }

    async def _publish(
        self,
        event_type: ChangeEventType,
        *,
        new: dict[str, Any] | None = None,
        old: dict[str, Any] | None = None,
    ) -> None:
        """Публикует событие изменения. Ошибка публикации не отменяет запись в БД."""
        if self._redis is None:
            return
        try:
            await self._redis.publish_json(self._channel, {
                "eventType": event_type.value,
                "new": new,
                "old": old,
            })
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type.value} в {self._channel}: {e}")
