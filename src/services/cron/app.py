# src/services/cron/app.py
"""
FastAPI приложение Lifecycle API.

Принимает вызовы внешнего планировщика (cron) и действия над поездками.
Зависимости создаются в lifespan и хранятся в app.state; в тестах
их можно передать в create_app() готовыми.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.common.constants import TypeMsg
from src.common.logger import log_info
from src.config import settings
from src.services.cron.dependencies import CronUnauthorized
from src.services.cron.routes import cron_router, trips_router
from src.shared.models.common import HealthStatus

if TYPE_CHECKING:
    from src.config.loader import CronSettings
    from src.core.lifecycle import OrderLifecycleAdvancer, TripLifecycleAdvancer, TripService


SERVICE_NAME = "lifecycle_api"


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    await log_info("Lifecycle API запускается...", type_msg=TypeMsg.INFO)

    owns_resources = app.state.trip_advancer is None
    if owns_resources:
        from src.core.lifecycle import (
            OrderLifecycleAdvancer,
            OrderRepository,
            TripLifecycleAdvancer,
            TripRepository,
            TripService,
        )
        from src.infra.database import init_db
        from src.infra.event_bus import init_event_bus

        db = await init_db()
        event_bus = await init_event_bus()

        trip_repository = TripRepository(db)
        app.state.db = db
        app.state.trip_advancer = TripLifecycleAdvancer.from_settings(
            trip_repository, settings.lifecycle, event_bus=event_bus,
        )
        app.state.order_advancer = OrderLifecycleAdvancer.from_settings(
            OrderRepository(db), settings.lifecycle, event_bus=event_bus,
        )
        app.state.trip_service = TripService(trip_repository, event_bus=event_bus)

    if not app.state.cron_settings.CRON_SECRET:
        await log_info("CRON_SECRET не задан: все вызовы /api/cron будут отклонены", type_msg=TypeMsg.WARNING)

    yield

    if owns_resources:
        from src.infra.database import close_db
        from src.infra.event_bus import close_event_bus

        await close_event_bus()
        await close_db()

    await log_info("Lifecycle API остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

def create_app(
    *,
    trip_advancer: Optional["TripLifecycleAdvancer"] = None,
    order_advancer: Optional["OrderLifecycleAdvancer"] = None,
    trip_service: Optional["TripService"] = None,
    cron_settings: Optional["CronSettings"] = None,
) -> FastAPI:
    """Создаёт приложение. Без аргументов зависимости поднимаются в lifespan."""
    app = FastAPI(
        title="Lifecycle API",
        description="Автоматическая смена статусов поездок и заказов",
        version=settings.system.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.db = None
    app.state.trip_advancer = trip_advancer
    app.state.order_advancer = order_advancer
    app.state.trip_service = trip_service
    app.state.cron_settings = cron_settings or settings.cron

    @app.exception_handler(CronUnauthorized)
    async def cron_unauthorized_handler(request: Request, exc: CronUnauthorized) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Unauthorized"},
        )

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check(request: Request) -> HealthStatus:
        """Проверка здоровья сервиса."""
        deps: dict[str, str] = {}
        db = request.app.state.db
        if db is not None:
            deps["postgres"] = "healthy" if await db.health_check() else "unhealthy"

        overall = "healthy" if all(v == "healthy" for v in deps.values()) else "degraded"
        return HealthStatus(
            service=SERVICE_NAME,
            status=overall,
            version=settings.system.VERSION,
            dependencies=deps,
        )

    app.include_router(cron_router)
    app.include_router(trips_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.deployment.CRON_API_HOST, port=settings.deployment.CRON_API_PORT)
