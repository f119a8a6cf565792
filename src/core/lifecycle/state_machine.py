# src/core/lifecycle/state_machine.py
"""
Конечные автоматы статусов поездки и заказа.
"""

from __future__ import annotations

from src.common.constants import OrderStatus, TripStatus


class TripStateMachine:
    """
    State machine для переходов между статусами поездки.

    Допустимые переходы:
    - pending → accepted → in_progress → completed
    - pending → cancelled (таймаут или отмена)
    - accepted → cancelled
    completed и cancelled терминальны.
    """

    VALID_TRANSITIONS: dict[TripStatus, list[TripStatus]] = {
        TripStatus.PENDING: [TripStatus.ACCEPTED, TripStatus.CANCELLED],
        TripStatus.ACCEPTED: [TripStatus.IN_PROGRESS, TripStatus.CANCELLED],
        TripStatus.IN_PROGRESS: [TripStatus.COMPLETED],
        TripStatus.COMPLETED: [],
        TripStatus.CANCELLED: [],
    }

    TERMINAL: frozenset[TripStatus] = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})

    @classmethod
    def can_transition(cls, from_status: TripStatus | str, to_status: TripStatus | str) -> bool:
        """Проверяет, допустим ли переход. Неизвестный статус -> False."""
        try:
            current = TripStatus(from_status)
            target = TripStatus(to_status)
        except ValueError:
            return False
        return target in cls.VALID_TRANSITIONS.get(current, [])

    @classmethod
    def validate_transition(cls, from_status: TripStatus | str, to_status: TripStatus | str) -> None:
        """Проверяет переход и выбрасывает исключение при ошибке."""
        if not cls.can_transition(from_status, to_status):
            raise ValueError(f"Недопустимый переход: {from_status} → {to_status}")

    @classmethod
    def is_terminal(cls, status: TripStatus | str) -> bool:
        return TripStatus(status) in cls.TERMINAL


class OrderStateMachine:
    """
    State machine заказа:
    pending → confirmed → preparing → ready → out_for_delivery → delivered → refunded,
    отмена возможна до выдачи (pending/confirmed/preparing).
    """

    VALID_TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
        OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
        OrderStatus.CONFIRMED: [OrderStatus.PREPARING, OrderStatus.CANCELLED],
        OrderStatus.PREPARING: [OrderStatus.READY, OrderStatus.CANCELLED],
        OrderStatus.READY: [OrderStatus.OUT_FOR_DELIVERY],
        OrderStatus.OUT_FOR_DELIVERY: [OrderStatus.DELIVERED],
        OrderStatus.DELIVERED: [OrderStatus.REFUNDED],
        OrderStatus.CANCELLED: [],
        OrderStatus.REFUNDED: [],
    }

    @classmethod
    def can_transition(cls, from_status: OrderStatus | str, to_status: OrderStatus | str) -> bool:
        try:
            current = OrderStatus(from_status)
            target = OrderStatus(to_status)
        except ValueError:
            return False
        return target in cls.VALID_TRANSITIONS.get(current, [])

    @classmethod
    def validate_transition(cls, from_status: OrderStatus | str, to_status: OrderStatus | str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise ValueError(f"Недопустимый переход заказа: {from_status} → {to_status}")
