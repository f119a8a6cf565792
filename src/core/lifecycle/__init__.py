# src/core/lifecycle/__init__.py
"""
Модуль жизненного цикла поездок и заказов.
"""

from src.core.lifecycle.models import (
    OrderAdvanceResult,
    OrderRecord,
    StatusChangeRequest,
    TripAdvanceResult,
    TripRecord,
)
from src.core.lifecycle.state_machine import OrderStateMachine, TripStateMachine
from src.core.lifecycle.repository import OrderRepository, TripRepository
from src.core.lifecycle.advancer import OrderLifecycleAdvancer, TripLifecycleAdvancer
from src.core.lifecycle.service import TripConflictError, TripNotFoundError, TripService

__all__ = [
    "OrderAdvanceResult",
    "OrderRecord",
    "StatusChangeRequest",
    "TripAdvanceResult",
    "TripRecord",
    "OrderStateMachine",
    "TripStateMachine",
    "OrderRepository",
    "TripRepository",
    "OrderLifecycleAdvancer",
    "TripLifecycleAdvancer",
    "TripConflictError",
    "TripNotFoundError",
    "TripService",
]
