# src/core/lifecycle/service.py
"""
Действия водителя и пользователя над поездкой.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from src.common.constants import PaymentStatus, TripStatus
from src.common.logger import log_info
from src.core.lifecycle.advancer import Clock, elapsed_minutes, utc_now
from src.core.lifecycle.models import TripRecord
from src.core.lifecycle.state_machine import TripStateMachine
from src.infra.event_bus import DomainEvent, EventTypes

if TYPE_CHECKING:
    from src.core.lifecycle.repository import TripRepository
    from src.infra.event_bus import EventBus


class TripNotFoundError(ValueError):
    """Поездка не найдена."""


class TripConflictError(ValueError):
    """Статус поездки изменился между чтением и записью."""


class TripService:
    """Сервис управления статусом поездки."""

    def __init__(
        self,
        repository: "TripRepository",
        event_bus: Optional["EventBus"] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._event_bus = event_bus
        self._clock = clock

    async def get_trip(self, trip_id: str) -> Optional[TripRecord]:
        return await self._repository.get_by_id(trip_id)

    async def change_status(
        self,
        trip_id: str,
        new_status: TripStatus,
        driver_id: Optional[str] = None,
    ) -> TripRecord:
        """
        Переводит поездку в new_status.

        - accepted требует driver_id и записывает его в поездку
        - completed вычисляет actual_duration от created_at и ставит payment_status=pending

        Raises:
            TripNotFoundError: поездка не найдена
            TripConflictError: статус изменился конкурентно
            ValueError: недопустимый переход или нет driver_id при принятии
        """
        trip = await self._repository.get_by_id(trip_id)
        if trip is None:
            raise TripNotFoundError(f"Поездка {trip_id} не найдена")

        new_status = TripStatus(new_status)
        TripStateMachine.validate_transition(trip.status, new_status)

        actual_duration: Optional[int] = None
        payment_status: Optional[PaymentStatus] = None

        if new_status == TripStatus.ACCEPTED:
            if not driver_id:
                raise ValueError("Для принятия поездки нужен driver_id")
        else:
            driver_id = None

        if new_status == TripStatus.COMPLETED:
            actual_duration = elapsed_minutes(trip.created_at, self._clock())
            payment_status = PaymentStatus.PENDING

        updated = await self._repository.transition(
            trip.id,
            trip.status,
            new_status,
            driver_id=driver_id,
            actual_duration=actual_duration,
            payment_status=payment_status,
        )
        if updated is None:
            raise TripConflictError(f"Статус поездки {trip_id} изменился, повторите запрос")

        await log_info(f"Поездка {trip_id}: {trip.status.value} → {new_status.value}")

        if self._event_bus is not None:
            await self._event_bus.publish(DomainEvent(
                event_type=EventTypes.TRIP_STATUS_CHANGED,
                payload={
                    "trip_id": updated.id,
                    "old_status": trip.status.value,
                    "new_status": updated.status.value,
                    "driver_id": updated.driver_id,
                },
            ))

        return updated
