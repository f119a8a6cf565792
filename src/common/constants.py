"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class TripStatus(str, Enum):
    """Статусы поездки."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class OrderStatus(str, Enum):
    """Статусы заказа магазина/ресторана."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    def __str__(self) -> str:
        return self.value


class PaymentStatus(str, Enum):
    """Статусы оплаты."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class NotificationType(str, Enum):
    """Типы уведомлений пользователю."""
    ORDER = "order"
    PROMO = "promo"
    SYSTEM = "system"
    DELIVERY = "delivery"


class ChangeEventType(str, Enum):
    """Типы событий изменения строки таблицы."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class FeedKind(str, Enum):
    """Источник потока изменений для трекера."""
    REDIS = "redis"
    POSTGRES = "postgres"
