# tests/infra/test_database.py
"""
Тесты для менеджера базы данных.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

import src.infra.database as database
from src.infra.database import DatabaseManager, get_db, retry_on_connection_error


class TestRetryOnConnectionError:
    """Тесты для декоратора retry_on_connection_error."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self) -> None:
        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def successful_func():
            return "success"

        assert await successful_func() == "success"

    @pytest.mark.asyncio
    async def test_retry_on_connection_error(self) -> None:
        call_count = 0

        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def failing_then_success():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ConnectionRefusedError("Connection refused")
            return "success"

        assert await failing_then_success() == "success"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_max_attempts_exceeded(self) -> None:
        @retry_on_connection_error(max_attempts=2, delay=0.01)
        async def always_failing():
            raise ConnectionRefusedError("Connection refused")

        with pytest.raises(ConnectionRefusedError):
            await always_failing()

    @pytest.mark.asyncio
    async def test_non_connection_error_not_retried(self) -> None:
        call_count = 0

        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def value_error():
            nonlocal call_count
            call_count += 1
            raise ValueError("bad query")

        with pytest.raises(ValueError):
            await value_error()
        assert call_count == 1


class TestDatabaseManager:

    def test_pool_before_connect_raises(self) -> None:
        with pytest.raises(RuntimeError):
            DatabaseManager().pool

    @pytest.mark.asyncio
    async def test_connect_creates_pool_once(self) -> None:
        pool = MagicMock()
        with patch("src.infra.database.asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
            db = DatabaseManager(dsn="postgresql://u:p@h:5432/d")
            await db.connect()
            await db.connect()

        create_pool.assert_awaited_once()
        assert create_pool.await_args.kwargs["dsn"] == "postgresql://u:p@h:5432/d"
        assert db.is_connected

    @pytest.mark.asyncio
    async def test_queries_are_not_retried(self) -> None:
        conn = AsyncMock()
        conn.fetch.side_effect = ConnectionResetError("reset")
        db = DatabaseManager(dsn="postgresql://x")
        db._pool = MagicMock()
        db._pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
        db._pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)

        with pytest.raises(ConnectionResetError):
            await db.fetch("SELECT 1")
        assert conn.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_open_listener_requires_dsn(self) -> None:
        with pytest.raises(RuntimeError):
            await DatabaseManager().open_listener()

    @pytest.mark.asyncio
    async def test_open_listener_uses_dedicated_connection(self) -> None:
        conn = MagicMock()
        with patch("src.infra.database.asyncpg.connect", AsyncMock(return_value=conn)) as connect:
            result = await DatabaseManager(dsn="postgresql://x").open_listener()

        assert result is conn
        connect.assert_awaited_once_with(dsn="postgresql://x")

    @pytest.mark.asyncio
    async def test_health_check_failure(self) -> None:
        db = DatabaseManager(dsn="postgresql://x")
        db.fetchval = AsyncMock(side_effect=asyncpg.InterfaceError("closed"))

        assert await db.health_check() is False


class TestProcessInstance:

    def test_get_db_without_init_raises(self) -> None:
        with patch.object(database, "_db_manager", None):
            with pytest.raises(RuntimeError):
                get_db()

    @pytest.mark.asyncio
    async def test_close_db_without_init_is_noop(self) -> None:
        with patch.object(database, "_db_manager", None):
            await database.close_db()
