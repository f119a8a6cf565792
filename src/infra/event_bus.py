# src/infra/event_bus.py
"""
Шина доменных событий на базе RabbitMQ.
Сервисы публикуют факты о смене статусов поездок и заказов
в topic exchange; потребители подключаются по routing key.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import aio_pika
from aio_pika import Message, ExchangeType
from aio_pika.abc import AbstractConnection, AbstractChannel, AbstractExchange

from src.common.logger import log_debug, log_error, log_info
from src.common.constants import TypeMsg


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# ДОМЕННЫЕ СОБЫТИЯ
# =============================================================================

@dataclass
class DomainEvent:
    """Доменное событие, публикуемое в шину."""
    event_type: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: str = field(default_factory=_utc_now_iso)

    def to_json(self) -> str:
        """Сериализует событие в JSON."""
        return json.dumps({
            "event_id": self.event_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, data: str) -> DomainEvent:
        """Десериализует событие из JSON."""
        parsed = json.loads(data)
        return cls(
            event_id=parsed.get("event_id", str(uuid4())),
            event_type=parsed.get("event_type", ""),
            timestamp=parsed.get("timestamp", ""),
            payload=parsed.get("payload", {}),
        )


class EventTypes:
    """Константы типов событий (routing keys)."""
    # Поездки
    TRIP_STATUS_CHANGED = "trip.status_changed"
    TRIP_CANCELLED = "trip.cancelled"
    TRIP_COMPLETED = "trip.completed"

    # Заказы
    ORDER_CONFIRMED = "order.confirmed"
    ORDER_READY = "order.ready"


class EventBus:
    """
    Публикатор доменных событий в RabbitMQ.

    Ошибки публикации логируются и не пробрасываются: событие публикуется
    после commit, и его потеря не должна откатывать уже сохранённое состояние.
    """

    def __init__(self, url: str | None = None, exchange_name: str = "delivery.events") -> None:
        self._url = url
        self._exchange_name = exchange_name
        self._connection: AbstractConnection | None = None
        self._channel: AbstractChannel | None = None
        self._exchange: AbstractExchange | None = None

    @property
    def is_connected(self) -> bool:
        """Проверяет, активно ли соединение."""
        return self._connection is not None and not self._connection.is_closed

    async def connect(self, url: str | None = None) -> None:
        """
        Подключается к RabbitMQ и объявляет topic exchange.

        Args:
            url: URL RabbitMQ (если None, берётся из конструктора или конфига)
        """
        if self.is_connected:
            return

        url = url or self._url
        if url is None:
            from src.config import settings
            url = settings.rabbitmq.url
            self._exchange_name = settings.rabbitmq.RABBITMQ_EXCHANGE
        self._url = url

        await log_info("Подключение к RabbitMQ...", type_msg=TypeMsg.INFO)

        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            ExchangeType.TOPIC,
            durable=True,
        )

        await log_info("Подключение к RabbitMQ установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с RabbitMQ."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._channel = None
            self._exchange = None
            await log_info("Соединение с RabbitMQ закрыто", type_msg=TypeMsg.INFO)

    async def publish(self, event: DomainEvent) -> bool:
        """
        Публикует событие в exchange, routing key = event_type.

        Returns:
            True если событие отправлено
        """
        if not self.is_connected or self._exchange is None:
            await log_error(f"Не удалось опубликовать {event.event_type}: нет соединения с RabbitMQ")
            return False

        try:
            message = Message(
                body=event.to_json().encode(),
                content_type="application/json",
                message_id=event.event_id,
                timestamp=datetime.now(timezone.utc),
            )
            await self._exchange.publish(message, routing_key=event.event_type)
        except Exception as e:
            await log_error(f"Ошибка публикации события {event.event_type}: {e}")
            return False

        await log_debug(f"Событие опубликовано: {event.event_type}")
        return True

    async def health_check(self) -> bool:
        """Проверяет здоровье подключения к RabbitMQ."""
        return self.is_connected


# Экземпляр процесса, создаётся в init_event_bus()
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus | None:
    """
    Возвращает EventBus текущего процесса.
    None, если шина отключена в конфигурации или ещё не инициализирована.
    """
    return _event_bus


async def init_event_bus() -> EventBus | None:
    """
    Инициализирует подключение к RabbitMQ по настройкам из конфигурации.
    """
    global _event_bus
    from src.config import settings

    if not settings.rabbitmq.RABBITMQ_ENABLED:
        await log_info("RabbitMQ отключён в конфигурации", type_msg=TypeMsg.INFO)
        return None

    bus = EventBus(url=settings.rabbitmq.url, exchange_name=settings.rabbitmq.RABBITMQ_EXCHANGE)
    await bus.connect()
    await log_info(
        f"RabbitMQ подключён: {settings.rabbitmq.RABBITMQ_HOST}:{settings.rabbitmq.RABBITMQ_PORT}",
        type_msg=TypeMsg.INFO,
    )
    _event_bus = bus
    return bus


async def close_event_bus() -> None:
    """Закрывает подключение к RabbitMQ."""
    global _event_bus
    if _event_bus is None:
        return
    await _event_bus.disconnect()
    _event_bus = None
    await log_info("RabbitMQ отключён", type_msg=TypeMsg.INFO)
