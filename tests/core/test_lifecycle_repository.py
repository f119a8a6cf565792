# tests/core/test_lifecycle_repository.py
"""
Тесты репозиториев поездок и заказов (src/core/lifecycle/repository.py).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from fakes import NOW, make_order, make_transaction_db, make_trip
from src.common.constants import NotificationType, OrderStatus, PaymentStatus, TripStatus
from src.core.lifecycle.repository import OrderRepository, TripRepository
from src.core.notifications.repository import NotificationCreate, NotificationRepository


def notification(user_id: str = "user-t1") -> NotificationCreate:
    return NotificationCreate(
        user_id=user_id,
        type=NotificationType.DELIVERY,
        title="Trip Cancelled",
        message="No drivers were available for your trip. Please try again.",
        data={"tripId": "t1"},
    )


def trip_row(**overrides) -> dict:
    row = {
        "id": 1,
        "user_id": 10,
        "driver_id": None,
        "status": "pending",
        "created_at": datetime(2024, 5, 1, tzinfo=timezone.utc),
        "fare": Decimal("25.50"),
        "distance": None,
        "payment_status": None,
        "actual_duration": None,
    }
    row.update(overrides)
    return row


class TestTripRepositoryReads:

    @pytest.mark.asyncio
    async def test_find_stale_filters_by_status_and_creation(self) -> None:
        db = make_transaction_db()
        db.fetch.return_value = [trip_row()]

        trips = await TripRepository(db).find_stale(TripStatus.PENDING, NOW)

        query, status, created_before = db.fetch.await_args.args
        assert "WHERE status = $1 AND created_at < $2" in query
        assert (status, created_before) == ("pending", NOW)
        assert trips[0].id == "1"
        assert trips[0].user_id == "10"
        assert trips[0].fare == 25.5

    @pytest.mark.asyncio
    async def test_find_stale_error_propagates(self) -> None:
        db = make_transaction_db()
        db.fetch.side_effect = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            await TripRepository(db).find_stale(TripStatus.PENDING, NOW)

    @pytest.mark.asyncio
    async def test_get_by_id_error_returns_none(self) -> None:
        db = make_transaction_db()
        db.fetchrow.side_effect = ConnectionError("db down")

        assert await TripRepository(db).get_by_id("1") is None


class TestCancelStale:

    @pytest.mark.asyncio
    async def test_update_and_notification_share_transaction(self) -> None:
        conn = AsyncMock()
        conn.fetchval.side_effect = ["t1", 101]
        db = make_transaction_db(conn)

        cancelled = await TripRepository(db).cancel_stale(make_trip("t1", TripStatus.PENDING, 6), notification())

        assert cancelled is True
        assert db.transactions == 1
        update_call, insert_call = conn.fetchval.await_args_list
        assert "WHERE id = $1 AND status = $3" in update_call.args[0]
        assert update_call.args[1:] == ("t1", "cancelled", "pending")
        assert "INSERT INTO notifications" in insert_call.args[0]
        assert insert_call.args[1:5] == ("user-t1", "delivery", "Trip Cancelled",
                                         "No drivers were available for your trip. Please try again.")
        assert json.loads(insert_call.args[5]) == {"tripId": "t1"}
        db.fetchval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_status_changed_concurrently(self) -> None:
        conn = AsyncMock()
        conn.fetchval.return_value = None
        db = make_transaction_db(conn)

        cancelled = await TripRepository(db).cancel_stale(make_trip("t1", TripStatus.PENDING, 6), notification())

        assert cancelled is False
        assert conn.fetchval.await_count == 1

    @pytest.mark.asyncio
    async def test_notification_failure_propagates(self) -> None:
        conn = AsyncMock()
        conn.fetchval.side_effect = ["t1", RuntimeError("insert failed")]
        db = make_transaction_db(conn)

        with pytest.raises(RuntimeError):
            await TripRepository(db).cancel_stale(make_trip("t1", TripStatus.PENDING, 6), notification())


class TestCompleteStale:

    @pytest.mark.asyncio
    async def test_credits_driver_with_atomic_increment(self) -> None:
        conn = AsyncMock()
        conn.fetchval.side_effect = ["t2", 102]
        db = make_transaction_db(conn)
        trip = make_trip("t2", TripStatus.IN_PROGRESS, 90, driver_id="drv-9", fare=25.0)

        completed = await TripRepository(db).complete_stale(trip, 90, notification("user-t2"))

        assert completed is True
        update_args = conn.fetchval.await_args_list[0].args
        assert update_args[1:] == ("t2", "completed", 90, PaymentStatus.PENDING.value, "in_progress")
        earnings_query, driver_id, fare = conn.execute.await_args.args
        assert "total_earnings = total_earnings + $2" in earnings_query
        assert "total_trips = total_trips + 1" in earnings_query
        assert (driver_id, fare) == ("drv-9", 25.0)

    @pytest.mark.asyncio
    async def test_without_driver_skips_earnings(self) -> None:
        conn = AsyncMock()
        conn.fetchval.side_effect = ["t2", 102]
        db = make_transaction_db(conn)
        trip = make_trip("t2", TripStatus.IN_PROGRESS, 90, driver_id=None)

        assert await TripRepository(db).complete_stale(trip, 90, notification("user-t2")) is True
        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lost_race_skips_earnings_and_notification(self) -> None:
        conn = AsyncMock()
        conn.fetchval.return_value = None
        db = make_transaction_db(conn)
        trip = make_trip("t2", TripStatus.IN_PROGRESS, 90)

        assert await TripRepository(db).complete_stale(trip, 90, notification()) is False
        conn.execute.assert_not_awaited()
        assert conn.fetchval.await_count == 1


class TestTransition:

    @pytest.mark.asyncio
    async def test_returns_updated_record(self) -> None:
        db = make_transaction_db()
        db.fetchrow.return_value = trip_row(status="accepted", driver_id=7)

        updated = await TripRepository(db).transition(
            "1", TripStatus.PENDING, TripStatus.ACCEPTED, driver_id="7",
        )

        assert updated.status == TripStatus.ACCEPTED
        assert updated.driver_id == "7"
        args = db.fetchrow.await_args.args
        assert args[1:] == ("1", "accepted", "pending", "7", None, None)

    @pytest.mark.asyncio
    async def test_conflict_returns_none(self) -> None:
        db = make_transaction_db()
        db.fetchrow.return_value = None

        assert await TripRepository(db).transition("1", TripStatus.PENDING, TripStatus.ACCEPTED) is None


class TestOrderRepository:

    @pytest.mark.asyncio
    async def test_find_stale_with_payment_filter(self) -> None:
        db = make_transaction_db()

        await OrderRepository(db).find_stale(OrderStatus.PENDING, NOW, payment_status=PaymentStatus.PAID)

        query, *args = db.fetch.await_args.args
        assert "AND payment_status = $3" in query
        assert args == ["pending", NOW, "paid"]

    @pytest.mark.asyncio
    async def test_find_stale_without_payment_filter(self) -> None:
        db = make_transaction_db()

        await OrderRepository(db).find_stale(OrderStatus.PREPARING, NOW)

        query, *args = db.fetch.await_args.args
        assert "payment_status" not in query.split("WHERE", 1)[1]
        assert args == ["preparing", NOW]

    @pytest.mark.asyncio
    async def test_advance_in_transaction(self) -> None:
        conn = AsyncMock()
        conn.fetchval.side_effect = ["o1", 55]
        db = make_transaction_db(conn)
        note = NotificationCreate(user_id="user-o1", type=NotificationType.ORDER, title="Order Ready",
                                  message="ready", data={"orderId": "o1"})

        advanced = await OrderRepository(db).advance(
            make_order("o1", OrderStatus.PREPARING, 31), OrderStatus.PREPARING, OrderStatus.READY, note,
        )

        assert advanced is True
        assert conn.fetchval.await_args_list[0].args[1:] == ("o1", "ready", "preparing")
        assert conn.fetchval.await_args_list[1].args[2] == "order"


class TestNotificationRepository:

    @pytest.mark.asyncio
    async def test_insert_through_pool(self) -> None:
        db = make_transaction_db()
        db.fetchval.return_value = 7

        notification_id = await NotificationRepository(db).insert(notification())

        assert notification_id == 7
        assert db.fetchval.await_args.args[0].strip().startswith("INSERT INTO notifications")
