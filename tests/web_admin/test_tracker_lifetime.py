# tests/web_admin/test_tracker_lifetime.py
"""
Тесты привязки трекера к жизни клиента (src/web_admin/components/tracker_lifetime.py).
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fakes import FakeFeed, FakeLocationRepository
from src.config.loader import MapSettings
from src.core.tracking.tracker import LiveLocationTracker
from src.web_admin.components.tracker_lifetime import release_on_delete


def make_client() -> MagicMock:
    client = MagicMock()
    client.id = "client-1"
    return client


class TestReleaseOnDelete:

    def test_registers_on_delete_not_on_disconnect(self) -> None:
        client = make_client()
        tracker = MagicMock()

        release = release_on_delete(client, tracker)

        client.on_delete.assert_called_once_with(release)
        client.on_disconnect.assert_not_called()

    @pytest.mark.asyncio
    async def test_release_unsubscribes_once(self) -> None:
        client = make_client()
        tracker = MagicMock()
        tracker.unsubscribe = AsyncMock()

        release = release_on_delete(client, tracker)
        await release()
        await release()

        tracker.unsubscribe.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_subscription_survives_until_delete(self) -> None:
        client = make_client()
        feed = FakeFeed()
        tracker = LiveLocationTracker(FakeLocationRepository([]), feed, initial_fetch_limit=500)
        await tracker.subscribe()

        release = release_on_delete(client, tracker)
        assert tracker.is_subscribed

        await release()

        assert not tracker.is_subscribed
        assert feed.close_calls == 1


class TestRenderDriverMap:

    @pytest.mark.asyncio
    async def test_build_error_after_subscribe_releases_tracker(self) -> None:
        from src.web_admin.views import driver_map

        client = make_client()
        feed = FakeFeed()
        tracker = LiveLocationTracker(FakeLocationRepository([]), feed, initial_fetch_limit=500)
        fake_ui = MagicMock()
        fake_ui.timer.side_effect = RuntimeError("timer failed")

        with patch.object(driver_map, "ui", fake_ui):
            with pytest.raises(RuntimeError):
                await driver_map.render_driver_map(client, tracker, MapSettings())

        assert not tracker.is_subscribed
        assert feed.close_calls == 1
        client.on_delete.assert_called_once()
