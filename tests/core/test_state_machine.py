# tests/core/test_state_machine.py
"""
Тесты конечных автоматов статусов (src/core/lifecycle/state_machine.py).
"""

from __future__ import annotations

import pytest

from src.common.constants import OrderStatus, TripStatus
from src.core.lifecycle.state_machine import OrderStateMachine, TripStateMachine


class TestTripStateMachine:

    @pytest.mark.parametrize("current,target", [
        (TripStatus.PENDING, TripStatus.ACCEPTED),
        (TripStatus.PENDING, TripStatus.CANCELLED),
        (TripStatus.ACCEPTED, TripStatus.IN_PROGRESS),
        (TripStatus.ACCEPTED, TripStatus.CANCELLED),
        (TripStatus.IN_PROGRESS, TripStatus.COMPLETED),
    ])
    def test_valid_transitions(self, current, target) -> None:
        assert TripStateMachine.can_transition(current, target)
        TripStateMachine.validate_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        (TripStatus.PENDING, TripStatus.IN_PROGRESS),
        (TripStatus.PENDING, TripStatus.COMPLETED),
        (TripStatus.IN_PROGRESS, TripStatus.CANCELLED),
        (TripStatus.ACCEPTED, TripStatus.PENDING),
    ])
    def test_invalid_transitions(self, current, target) -> None:
        assert not TripStateMachine.can_transition(current, target)
        with pytest.raises(ValueError):
            TripStateMachine.validate_transition(current, target)

    @pytest.mark.parametrize("terminal", [TripStatus.COMPLETED, TripStatus.CANCELLED])
    def test_nothing_leaves_terminal(self, terminal) -> None:
        assert TripStateMachine.is_terminal(terminal)
        for target in TripStatus:
            assert not TripStateMachine.can_transition(terminal, target)

    def test_accepts_string_values(self) -> None:
        assert TripStateMachine.can_transition("pending", "accepted")

    def test_unknown_status(self) -> None:
        assert not TripStateMachine.can_transition("teleported", TripStatus.COMPLETED)


class TestOrderStateMachine:

    def test_happy_path(self) -> None:
        path = [
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PREPARING,
            OrderStatus.READY,
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
        ]
        for current, target in zip(path, path[1:]):
            assert OrderStateMachine.can_transition(current, target)

    def test_ready_cannot_be_cancelled(self) -> None:
        with pytest.raises(ValueError):
            OrderStateMachine.validate_transition(OrderStatus.READY, OrderStatus.CANCELLED)

    def test_delivered_can_be_refunded(self) -> None:
        assert OrderStateMachine.can_transition(OrderStatus.DELIVERED, OrderStatus.REFUNDED)
