# src/infra/redis_client.py
"""
Клиент Redis.
Используется как транспорт потока изменений геопозиций (Pub/Sub).
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis
from redis.asyncio.client import PubSub

from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg


class RedisClient:
    """
    Асинхронный клиент Redis.
    Поддерживает:
    - Публикацию JSON сообщений в канал
    - Создание подписок Pub/Sub
    """

    def __init__(self, url: str | None = None) -> None:
        self._url = url
        self._client: redis.Redis | None = None

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    async def connect(
        self,
        url: str | None = None,
        max_connections: int = 50,
    ) -> None:
        """
        Подключается к Redis.

        Args:
            url: URL Redis (если None, берётся из конфига)
            max_connections: Максимальное количество соединений
        """
        if self._client is not None:
            return

        url = url or self._url
        if url is None:
            from src.config import settings
            url = settings.redis.url
            max_connections = settings.redis.REDIS_MAX_CONNECTIONS
        self._url = url

        await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )

        # Проверяем подключение
        await self._client.ping()

        await log_info("Подключение к Redis установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    # =========================================================================
    # PUB/SUB
    # =========================================================================

    async def publish(self, channel: str, message: str) -> int:
        """
        Публикует сообщение в канал.

        Returns:
            Количество подписчиков, получивших сообщение
        """
        return await self.client.publish(channel, message)

    async def publish_json(self, channel: str, data: dict[str, Any]) -> int:
        """Сериализует словарь в JSON и публикует в канал."""
        return await self.publish(channel, json.dumps(data, ensure_ascii=False, default=str))

    def pubsub(self) -> PubSub:
        """Создаёт объект подписки Pub/Sub."""
        return self.client.pubsub()

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    async def health_check(self) -> bool:
        """
        Проверяет здоровье подключения к Redis.

        Returns:
            True если подключение работает
        """
        try:
            return await self.client.ping()
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


# Экземпляр процесса, создаётся в init_redis()
_redis_client: RedisClient | None = None


def get_redis() -> RedisClient:
    """
    Возвращает RedisClient текущего процесса.

    Raises:
        RuntimeError: если init_redis() ещё не вызывался
    """
    if _redis_client is None:
        raise RuntimeError("Redis не инициализирован. Вызовите init_redis() сначала.")
    return _redis_client


async def init_redis() -> RedisClient:
    """
    Инициализирует подключение к Redis по настройкам из конфигурации.
    """
    global _redis_client
    from src.config import settings

    client = RedisClient(url=settings.redis.url)
    await client.connect(max_connections=settings.redis.REDIS_MAX_CONNECTIONS)
    await log_info(
        f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}/{settings.redis.REDIS_DB}",
        type_msg=TypeMsg.INFO,
    )
    _redis_client = client
    return client


async def close_redis() -> None:
    """Закрывает подключение к Redis."""
    global _redis_client
    if _redis_client is None:
        return
    await _redis_client.disconnect()
    _redis_client = None
    await log_info("Redis отключён", type_msg=TypeMsg.INFO)
