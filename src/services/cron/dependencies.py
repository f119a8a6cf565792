# src/services/cron/dependencies.py
"""
Зависимости Lifecycle API: проверка секрета планировщика
и доступ к сервисам, созданным в lifespan.
"""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING

from fastapi import Request

from src.common.logger import log_warning

if TYPE_CHECKING:
    from src.config.loader import CronSettings
    from src.core.lifecycle import OrderLifecycleAdvancer, TripLifecycleAdvancer, TripService


class CronUnauthorized(Exception):
    """Секрет планировщика отсутствует или неверен."""


def secret_matches(provided: str | None, expected: str) -> bool:
    """
    Сравнение секрета за постоянное время.
    Пустой ожидаемый секрет не принимает ни одного запроса.
    """
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def verify_cron_secret(request: Request) -> None:
    """Проверяет заголовок с секретом, при ошибке выбрасывает CronUnauthorized."""
    cron_settings: "CronSettings" = request.app.state.cron_settings
    provided = request.headers.get(cron_settings.CRON_HEADER)

    if not secret_matches(provided, cron_settings.CRON_SECRET):
        client = request.client.host if request.client else "unknown"
        await log_warning(f"Отклонён запрос планировщика {request.url.path} от {client}")
        raise CronUnauthorized()


def _require(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} не инициализирован")
    return value


def get_trip_advancer(request: Request) -> "TripLifecycleAdvancer":
    return _require(request, "trip_advancer")


def get_order_advancer(request: Request) -> "OrderLifecycleAdvancer":
    return _require(request, "order_advancer")


def get_trip_service(request: Request) -> "TripService":
    return _require(request, "trip_service")
