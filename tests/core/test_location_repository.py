# tests/core/test_location_repository.py
"""
Тесты репозитория позиций (src/core/tracking/repository.py).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.core.tracking.repository import DriverLocationRepository


UPDATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def row(driver_id, lat, lng) -> dict:
    return {"driver_id": driver_id, "lat": lat, "lng": lng, "updated_at": UPDATED}


class TestFetchPositions:

    @pytest.mark.asyncio
    async def test_maps_rows_and_passes_limit(self, mock_db) -> None:
        mock_db.fetch.return_value = [row("1", Decimal("31.5"), "34.4"), row(2, 1.0, 2.0)]

        positions = await DriverLocationRepository(mock_db).fetch_positions(limit=10)

        assert [p.driver_id for p in positions] == ["1", "2"]
        assert positions[0].latitude == 31.5
        assert mock_db.fetch.await_args.args[1] == 10
        assert "LIMIT $1" in mock_db.fetch.await_args.args[0]

    @pytest.mark.asyncio
    async def test_skips_invalid_rows(self, mock_db) -> None:
        mock_db.fetch.return_value = [row("1", "garbage", 2.0), row("2", 1.0, 2.0)]

        positions = await DriverLocationRepository(mock_db).fetch_positions()

        assert [p.driver_id for p in positions] == ["2"]

    @pytest.mark.asyncio
    async def test_query_error_propagates(self, mock_db) -> None:
        mock_db.fetch.side_effect = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            await DriverLocationRepository(mock_db).fetch_positions()


class TestSinglePosition:

    @pytest.mark.asyncio
    async def test_get_position_error_returns_none(self, mock_db) -> None:
        mock_db.fetchrow.side_effect = ConnectionError("db down")

        assert await DriverLocationRepository(mock_db).get_position("1") is None

    @pytest.mark.asyncio
    async def test_upsert_returns_stored_row(self, mock_db) -> None:
        mock_db.fetchrow.return_value = row("1", 1.5, 2.5)

        stored = await DriverLocationRepository(mock_db).upsert_position("1", 1.5, 2.5, UPDATED)

        assert stored.longitude == 2.5
        query, *args = mock_db.fetchrow.await_args.args
        assert "ON CONFLICT (driver_id)" in query
        assert args == ["1", 1.5, 2.5, UPDATED]

    @pytest.mark.asyncio
    async def test_delete_missing_returns_none(self, mock_db) -> None:
        mock_db.fetchrow.return_value = None

        assert await DriverLocationRepository(mock_db).delete_position("1") is None

    @pytest.mark.asyncio
    async def test_delete_returns_removed_row(self, mock_db) -> None:
        mock_db.fetchrow.return_value = row("1", 1.0, 1.0)

        removed = await DriverLocationRepository(mock_db).delete_position("1")

        assert removed.driver_id == "1"
        assert "DELETE FROM driver_locations" in mock_db.fetchrow.await_args.args[0]
