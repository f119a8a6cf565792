# src/core/lifecycle/advancer.py
"""
Автоматическая смена статусов поездок и заказов по времени.

Один вызов run() выполняет один проход "найти просроченные → сдвинуть".
Курсор прогресса не хранится: повторный проход безопасен, так как
выборка и UPDATE фильтруют по текущему статусу.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Optional

from src.common.constants import NotificationType, OrderStatus, PaymentStatus, TripStatus
from src.common.logger import log_info, log_warning
from src.core.lifecycle.models import OrderAdvanceResult, TripAdvanceResult
from src.core.lifecycle.state_machine import OrderStateMachine
from src.core.notifications.repository import NotificationCreate
from src.infra.event_bus import DomainEvent, EventTypes

if TYPE_CHECKING:
    from src.config.loader import LifecycleSettings
    from src.core.lifecycle.models import OrderRecord, TripRecord
    from src.core.lifecycle.repository import OrderRepository, TripRepository
    from src.infra.event_bus import EventBus


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def format_fare(fare: float) -> str:
    """25.0 -> "25", 25.5 -> "25.5"."""
    if float(fare).is_integer():
        return str(int(fare))
    return str(fare)


def elapsed_minutes(created_at: datetime, now: datetime) -> int:
    """Целое число минут с момента создания (округление вниз)."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return int((now - created_at).total_seconds() // 60)


class TripLifecycleAdvancer:
    """
    Проход по поездкам:
    1. pending старше T1 → cancelled ("нет свободных водителей")
    2. in_progress старше T2 → completed, начисление водителю

    Пороги отсчитываются от created_at.
    """

    def __init__(
        self,
        repository: "TripRepository",
        *,
        pending_timeout: timedelta = timedelta(minutes=5),
        in_progress_timeout: timedelta = timedelta(minutes=60),
        event_bus: Optional["EventBus"] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._pending_timeout = pending_timeout
        self._in_progress_timeout = in_progress_timeout
        self._event_bus = event_bus
        self._clock = clock
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        repository: "TripRepository",
        lifecycle: "LifecycleSettings",
        event_bus: Optional["EventBus"] = None,
    ) -> TripLifecycleAdvancer:
        return cls(
            repository,
            pending_timeout=timedelta(minutes=lifecycle.PENDING_TRIP_TIMEOUT_MINUTES),
            in_progress_timeout=timedelta(minutes=lifecycle.IN_PROGRESS_TRIP_TIMEOUT_MINUTES),
            event_bus=event_bus,
        )

    async def run(self) -> TripAdvanceResult:
        """
        Выполняет один проход. Пересекающиеся вызовы выполняются по очереди.
        Исключения пробрасываются вызывающему; уже закоммиченные записи
        остаются сдвинутыми.
        """
        async with self._lock:
            now = self._clock()

            cancelled = 0
            for trip in await self._repository.find_stale(TripStatus.PENDING, now - self._pending_timeout):
                if await self._cancel(trip):
                    cancelled += 1

            completed = 0
            for trip in await self._repository.find_stale(TripStatus.IN_PROGRESS, now - self._in_progress_timeout):
                if await self._complete(trip, now):
                    completed += 1

            await log_info(f"Проход по поездкам: отменено {cancelled}, завершено {completed}")

            return TripAdvanceResult(
                success=True,
                message="Trip statuses updated successfully",
                cancelled_count=cancelled,
                completed_count=completed,
                timestamp=_iso(self._clock()),
            )

    async def _cancel(self, trip: "TripRecord") -> bool:
        notification = NotificationCreate(
            user_id=trip.user_id,
            type=NotificationType.DELIVERY,
            title="Trip Cancelled",
            message="No drivers were available for your trip. Please try again.",
            data={"tripId": trip.id},
        )
        if not await self._repository.cancel_stale(trip, notification):
            await log_warning(f"Поездка {trip.id} уже не в статусе pending, пропуск")
            return False

        await self._publish(EventTypes.TRIP_CANCELLED, {
            "trip_id": trip.id,
            "user_id": trip.user_id,
            "reason": "no_driver_available",
        })
        return True

    async def _complete(self, trip: "TripRecord", now: datetime) -> bool:
        actual_duration = elapsed_minutes(trip.created_at, now)
        notification = NotificationCreate(
            user_id=trip.user_id,
            type=NotificationType.DELIVERY,
            title="Trip Completed",
            message=f"Your trip has been completed. Total fare: {format_fare(trip.fare)}",
            data={"tripId": trip.id, "fare": trip.fare},
        )
        if not await self._repository.complete_stale(trip, actual_duration, notification):
            await log_warning(f"Поездка {trip.id} уже не в статусе in_progress, пропуск")
            return False

        await self._publish(EventTypes.TRIP_COMPLETED, {
            "trip_id": trip.id,
            "user_id": trip.user_id,
            "driver_id": trip.driver_id,
            "fare": trip.fare,
            "actual_duration": actual_duration,
            "payment_status": PaymentStatus.PENDING.value,
        })
        return True

    async def _publish(self, event_type: str, payload: dict) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))


class OrderLifecycleAdvancer:
    """
    Проход по заказам:
    1. pending + paid старше T3 → confirmed
    2. preparing старше T4 → ready
    """

    def __init__(
        self,
        repository: "OrderRepository",
        *,
        confirm_after: timedelta = timedelta(minutes=5),
        ready_after: timedelta = timedelta(minutes=30),
        event_bus: Optional["EventBus"] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._confirm_after = confirm_after
        self._ready_after = ready_after
        self._event_bus = event_bus
        self._clock = clock
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        repository: "OrderRepository",
        lifecycle: "LifecycleSettings",
        event_bus: Optional["EventBus"] = None,
    ) -> OrderLifecycleAdvancer:
        return cls(
            repository,
            confirm_after=timedelta(minutes=lifecycle.PENDING_ORDER_CONFIRM_MINUTES),
            ready_after=timedelta(minutes=lifecycle.PREPARING_ORDER_READY_MINUTES),
            event_bus=event_bus,
        )

    async def run(self) -> OrderAdvanceResult:
        async with self._lock:
            now = self._clock()

            confirmed = 0
            paid_pending = await self._repository.find_stale(
                OrderStatus.PENDING,
                now - self._confirm_after,
                payment_status=PaymentStatus.PAID,
            )
            for order in paid_pending:
                if await self._advance(
                    order,
                    OrderStatus.PENDING,
                    OrderStatus.CONFIRMED,
                    title="Order Confirmed",
                    message=f"Your order #{order.order_number} has been confirmed and is being prepared.",
                    event_type=EventTypes.ORDER_CONFIRMED,
                ):
                    confirmed += 1

            ready = 0
            for order in await self._repository.find_stale(OrderStatus.PREPARING, now - self._ready_after):
                if await self._advance(
                    order,
                    OrderStatus.PREPARING,
                    OrderStatus.READY,
                    title="Order Ready",
                    message=f"Your order #{order.order_number} is ready for pickup/delivery.",
                    event_type=EventTypes.ORDER_READY,
                ):
                    ready += 1

            await log_info(f"Проход по заказам: подтверждено {confirmed}, готово {ready}")

            return OrderAdvanceResult(
                success=True,
                message="Order statuses updated successfully",
                updated_count=confirmed + ready,
                confirmed_count=confirmed,
                ready_count=ready,
                timestamp=_iso(self._clock()),
            )

    async def _advance(
        self,
        order: "OrderRecord",
        from_status: OrderStatus,
        to_status: OrderStatus,
        *,
        title: str,
        message: str,
        event_type: str,
    ) -> bool:
        OrderStateMachine.validate_transition(from_status, to_status)
        notification = NotificationCreate(
            user_id=order.user_id,
            type=NotificationType.ORDER,
            title=title,
            message=message,
            data={"orderId": order.id},
        )
        if not await self._repository.advance(order, from_status, to_status, notification):
            await log_warning(f"Заказ {order.id} уже не в статусе {from_status.value}, пропуск")
            return False

        if self._event_bus is not None:
            await self._event_bus.publish(DomainEvent(
                event_type=event_type,
                payload={"order_id": order.id, "order_number": order.order_number, "user_id": order.user_id},
            ))
        return True
