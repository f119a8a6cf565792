# tests/infra/test_redis_client.py
"""
Тесты клиента Redis (src/infra/redis_client.py).
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import src.infra.redis_client as redis_module
from src.infra.redis_client import RedisClient, get_redis


class TestRedisClient:

    def test_client_requires_connect(self) -> None:
        with pytest.raises(RuntimeError):
            RedisClient("redis://localhost:6379/0").client

    @pytest.mark.asyncio
    async def test_connect_pings_once(self) -> None:
        fake = MagicMock()
        fake.ping = AsyncMock(return_value=True)

        with patch.object(redis_module.redis, "from_url", return_value=fake) as from_url:
            client = RedisClient("redis://localhost:6379/0")
            await client.connect()
            await client.connect()

        from_url.assert_called_once()
        assert from_url.call_args.kwargs["decode_responses"] is True
        fake.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_publish_json_serializes(self) -> None:
        client = RedisClient("redis://localhost:6379/0")
        client._client = MagicMock()
        client._client.publish = AsyncMock(return_value=1)

        receivers = await client.publish_json("driver_locations:changes", {"driver_id": "d1"})

        assert receivers == 1
        channel, message = client._client.publish.call_args.args
        assert channel == "driver_locations:changes"
        assert json.loads(message) == {"driver_id": "d1"}

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self) -> None:
        client = RedisClient("redis://localhost:6379/0")
        client._client = MagicMock()
        client._client.ping = AsyncMock(side_effect=ConnectionError("down"))

        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_disconnect_resets_client(self) -> None:
        client = RedisClient("redis://localhost:6379/0")
        fake = MagicMock()
        fake.aclose = AsyncMock()
        client._client = fake

        await client.disconnect()

        fake.aclose.assert_awaited_once()
        with pytest.raises(RuntimeError):
            client.client


def test_get_redis_requires_init() -> None:
    with patch.object(redis_module, "_redis_client", None):
        with pytest.raises(RuntimeError):
            get_redis()
