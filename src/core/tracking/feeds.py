# src/core/tracking/feeds.py
"""
Источники потока изменений таблицы driver_locations.

Фид не разбирает события: он только перекладывает сырые payload
в очередь трекера. Разбор и применение выполняет LiveLocationTracker
в своей задаче.

Реализации:
- RedisChangeFeed: канал Redis Pub/Sub (публикует location ingest API)
- PostgresChangeFeed: LISTEN/NOTIFY от триггера таблицы
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from src.common.constants import FeedKind
from src.common.logger import log_error, log_info, log_warning

if TYPE_CHECKING:
    from asyncpg import Connection
    from redis.asyncio.client import PubSub

    from src.config.loader import TrackerSettings
    from src.infra.database import DatabaseManager
    from src.infra.redis_client import RedisClient


class ChangeFeed(ABC):
    """Канал событий изменения одной таблицы."""

    @abstractmethod
    async def open(self, sink: asyncio.Queue) -> None:
        """Начать доставку сырых событий в очередь sink."""

    @abstractmethod
    async def close(self) -> None:
        """Освободить канал. Повторный вызов безопасен."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...


class RedisChangeFeed(ChangeFeed):
    """Подписка на канал Redis Pub/Sub."""

    def __init__(self, redis: "RedisClient", channel: str, poll_timeout: float = 1.0) -> None:
        self._redis = redis
        self._channel = channel
        self._poll_timeout = poll_timeout
        self._pubsub: "PubSub | None" = None
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def is_open(self) -> bool:
        return self._running

    async def open(self, sink: asyncio.Queue) -> None:
        if self._running:
            raise RuntimeError(f"Фид {self._channel} уже открыт")

        self._pubsub = self._redis.pubsub()
        await self._pubsub.subscribe(self._channel)
        self._running = True
        self._task = asyncio.create_task(self._listen(sink))
        await log_info(f"Подписка на Redis канал {self._channel}")

    async def close(self) -> None:
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pubsub:
            pubsub, self._pubsub = self._pubsub, None
            try:
                await pubsub.unsubscribe(self._channel)
            finally:
                await pubsub.aclose()
            await log_info(f"Отписка от Redis канала {self._channel}")

    async def _listen(self, sink: asyncio.Queue) -> None:
        """Читает сообщения из Pub/Sub и кладёт payload в очередь."""
        while self._running:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self._poll_timeout,
                )

                if message is None or message.get("type") != "message":
                    continue

                await sink.put(message.get("data"))

            except asyncio.CancelledError:
                break
            except Exception as e:
                # Транспорт переподключается сам, трекер сохраняет текущее состояние
                await log_error(f"Ошибка чтения Redis канала {self._channel}: {e}")
                await asyncio.sleep(1)


class PostgresChangeFeed(ChangeFeed):
    """LISTEN на канал PostgreSQL, заполняемый триггером driver_locations."""

    def __init__(self, db: "DatabaseManager", channel: str) -> None:
        self._db = db
        self._channel = channel
        self._conn: "Connection | None" = None
        self._sink: asyncio.Queue | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self, sink: asyncio.Queue) -> None:
        if self._conn is not None:
            raise RuntimeError(f"Фид {self._channel} уже открыт")

        self._sink = sink
        self._conn = await self._db.open_listener()
        await self._conn.add_listener(self._channel, self._on_notify)
        await log_info(f"LISTEN {self._channel}")

    async def close(self) -> None:
        if self._conn is None:
            return

        conn, self._conn = self._conn, None
        try:
            if not conn.is_closed():
                await conn.remove_listener(self._channel, self._on_notify)
        finally:
            await conn.close()
            self._sink = None
            await log_info(f"UNLISTEN {self._channel}")

    def _on_notify(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        """Колбэк asyncpg: выполняется в event loop, не должен блокировать."""
        if self._sink is None:
            return
        try:
            self._sink.put_nowait(payload)
        except asyncio.QueueFull:
            asyncio.get_running_loop().create_task(
                log_warning(f"Очередь трекера переполнена, событие {channel} отброшено")
            )


def build_feed(
    tracker_settings: "TrackerSettings",
    *,
    redis: "RedisClient | None" = None,
    db: "DatabaseManager | None" = None,
) -> ChangeFeed:
    """
    Создаёт фид по настройке TRACKER_FEED.

    Raises:
        ValueError: если для выбранного фида не передан клиент
    """
    kind = FeedKind(tracker_settings.TRACKER_FEED)

    if kind == FeedKind.REDIS:
        if redis is None:
            raise ValueError("Для redis фида нужен RedisClient")
        return RedisChangeFeed(redis, tracker_settings.TRACKER_REDIS_CHANNEL)

    if db is None:
        raise ValueError("Для postgres фида нужен DatabaseManager")
    return PostgresChangeFeed(db, tracker_settings.TRACKER_PG_CHANNEL)
