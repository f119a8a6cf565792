# tests/worker/test_scheduler.py
"""
Тесты встроенного планировщика (src/worker/scheduler.py, src/worker/base.py).
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.worker.scheduler import LifecycleScheduler


def advancer(result=None, error=None) -> MagicMock:
    mock = MagicMock()
    mock.run = AsyncMock(return_value=result or MagicMock(
        cancelled_count=0, completed_count=0, confirmed_count=0, ready_count=0,
    ))
    if error is not None:
        mock.run.side_effect = error
    return mock


class TestLifecycleScheduler:

    @pytest.mark.asyncio
    async def test_run_once_calls_both_advancers(self) -> None:
        trips, orders = advancer(), advancer()
        scheduler = LifecycleScheduler(trips, orders, interval_seconds=60)

        assert await scheduler.run_once() is True

        trips.run.assert_awaited_once()
        orders.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_trip_failure_does_not_skip_orders(self) -> None:
        trips, orders = advancer(error=RuntimeError("db down")), advancer()
        scheduler = LifecycleScheduler(trips, orders, interval_seconds=60)

        assert await scheduler.run_once() is False

        orders.run.assert_awaited_once()
        assert scheduler.get_stats() == {"ticks": 1, "failures": 1}

    @pytest.mark.asyncio
    async def test_without_order_advancer(self) -> None:
        trips = advancer()
        scheduler = LifecycleScheduler(trips, None, interval_seconds=60)

        assert await scheduler.run_once() is True

    @pytest.mark.asyncio
    async def test_loop_repeats_until_stopped(self) -> None:
        trips = advancer()
        scheduler = LifecycleScheduler(trips, None, interval_seconds=0.01)

        await scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()
        calls = trips.run.await_count
        await asyncio.sleep(0.03)

        assert calls >= 2
        assert trips.run.await_count == calls
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self) -> None:
        scheduler = LifecycleScheduler(advancer(), None, interval_seconds=10)

        await scheduler.start()
        await scheduler.start()
        await scheduler.stop()
        await scheduler.stop()

        assert scheduler.is_running is False
