# tests/core/test_trip_service.py
"""
Тесты смены статуса поездки по действию водителя/пользователя
(src/core/lifecycle/service.py).
"""

from __future__ import annotations

import pytest

from fakes import InMemoryTripRepository, fixed_clock, make_trip
from src.common.constants import TripStatus
from src.core.lifecycle.service import TripConflictError, TripNotFoundError, TripService
from src.infra.event_bus import EventTypes


def service_for(*trips, event_bus=None) -> tuple[TripService, InMemoryTripRepository]:
    repository = InMemoryTripRepository(list(trips))
    return TripService(repository, event_bus=event_bus, clock=fixed_clock()), repository


class TestChangeStatus:

    @pytest.mark.asyncio
    async def test_accept_assigns_driver(self) -> None:
        service, repository = service_for(make_trip("t1", TripStatus.PENDING, 1, driver_id=None))

        updated = await service.change_status("t1", TripStatus.ACCEPTED, driver_id="drv-3")

        assert updated.status == TripStatus.ACCEPTED
        assert repository.trips["t1"].driver_id == "drv-3"

    @pytest.mark.asyncio
    async def test_accept_requires_driver(self) -> None:
        service, _ = service_for(make_trip("t1", TripStatus.PENDING, 1, driver_id=None))

        with pytest.raises(ValueError):
            await service.change_status("t1", TripStatus.ACCEPTED)

    @pytest.mark.asyncio
    async def test_complete_sets_duration_and_payment(self) -> None:
        service, repository = service_for(make_trip("t1", TripStatus.IN_PROGRESS, 42))

        updated = await service.change_status("t1", "completed")

        assert updated.actual_duration == 42
        assert updated.payment_status == "pending"
        assert repository.earnings == {}

    @pytest.mark.asyncio
    async def test_driver_id_ignored_for_other_transitions(self) -> None:
        service, repository = service_for(make_trip("t1", TripStatus.ACCEPTED, 1, driver_id="drv-1"))

        await service.change_status("t1", TripStatus.IN_PROGRESS, driver_id="drv-2")

        assert repository.trips["t1"].driver_id == "drv-1"

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        service, _ = service_for()

        with pytest.raises(TripNotFoundError):
            await service.change_status("missing", TripStatus.CANCELLED)

    @pytest.mark.asyncio
    async def test_terminal_trip_rejected(self) -> None:
        service, _ = service_for(make_trip("t1", TripStatus.COMPLETED, 100))

        with pytest.raises(ValueError) as exc_info:
            await service.change_status("t1", TripStatus.CANCELLED)
        assert not isinstance(exc_info.value, (TripNotFoundError, TripConflictError))

    @pytest.mark.asyncio
    async def test_concurrent_change_is_conflict(self) -> None:
        service, repository = service_for(make_trip("t1", TripStatus.PENDING, 1))

        async def lost_race(*args, **kwargs):
            return None

        repository.transition = lost_race

        with pytest.raises(TripConflictError):
            await service.change_status("t1", TripStatus.CANCELLED)

    @pytest.mark.asyncio
    async def test_publishes_status_change(self, mock_event_bus) -> None:
        service, _ = service_for(make_trip("t1", TripStatus.PENDING, 1), event_bus=mock_event_bus)

        await service.change_status("t1", TripStatus.CANCELLED)

        event = mock_event_bus.publish.await_args.args[0]
        assert event.event_type == EventTypes.TRIP_STATUS_CHANGED
        assert event.payload["old_status"] == "pending"
        assert event.payload["new_status"] == "cancelled"
