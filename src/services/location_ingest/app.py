# src/services/location_ingest/app.py
"""
FastAPI приложение для приёма геолокации водителей.

Endpoints:
- POST /api/v1/location - обновить локацию водителя
- GET /api/v1/location - последние локации
- GET /api/v1/location/{driver_id} - последняя локация водителя
- DELETE /api/v1/location/{driver_id} - удалить локацию (водитель offline)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Query, Request, status
from pydantic import BaseModel, Field, ValidationError

from src.common.constants import FeedKind, TypeMsg
from src.common.logger import log_info
from src.config import settings
from src.core.tracking.models import DriverPosition
from src.services.location_ingest.service import LocationIngestService
from src.shared.models.common import ErrorResponse, HealthStatus


SERVICE_NAME = "location_ingest"


# === MODELS ===

class LocationUpdate(BaseModel):
    """Обновление геолокации."""
    driver_id: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    timestamp: datetime | None = None


class LocationResponse(BaseModel):
    """Ответ с локацией."""
    driver_id: str
    lat: float
    lng: float
    updated_at: datetime | None = None

    @classmethod
    def from_position(cls, position: DriverPosition) -> "LocationResponse":
        return cls(
            driver_id=position.driver_id,
            lat=position.latitude,
            lng=position.longitude,
            updated_at=position.updated_at,
        )


class StatsResponse(BaseModel):
    """Статистика сервиса."""
    total_updates: int
    total_removals: int
    unique_drivers: int


# === DEPENDENCIES ===

def get_service(request: Request) -> LocationIngestService:
    """Получить сервис."""
    service = request.app.state.service
    if service is None:
        raise RuntimeError("Service not initialized")
    return service


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    await log_info("Location Ingest запускается...", type_msg=TypeMsg.INFO)

    owns_resources = app.state.service is None
    if owns_resources:
        from src.core.tracking.repository import DriverLocationRepository
        from src.infra.database import init_db
        from src.infra.redis_client import init_redis

        db = await init_db()
        redis = None
        if FeedKind(settings.tracker.TRACKER_FEED) == FeedKind.REDIS:
            redis = await init_redis()

        app.state.db = db
        app.state.service = LocationIngestService(
            DriverLocationRepository(db),
            redis=redis,
            channel=settings.tracker.TRACKER_REDIS_CHANNEL,
        )

    yield

    if owns_resources:
        from src.infra.database import close_db
        from src.infra.redis_client import close_redis

        await close_redis()
        await close_db()

    await log_info("Location Ingest остановлен", type_msg=TypeMsg.INFO)


# === APP ===

def create_app(service: Optional[LocationIngestService] = None) -> FastAPI:
    """Создаёт приложение. Без сервиса зависимости поднимаются в lifespan."""
    app = FastAPI(
        title="Driver Location Ingest",
        description="Приём геолокации водителей и публикация изменений для трекера.",
        version=settings.system.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.service = service
    app.state.db = None

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

    @app.get("/stats", response_model=StatsResponse, tags=["Stats"])
    async def get_stats(request: Request) -> StatsResponse:
        """Получить статистику сервиса."""
        return StatsResponse(**get_service(request).get_stats())

    @app.post(
        "/api/v1/location",
        response_model=LocationResponse,
        responses={400: {"model": ErrorResponse, "description": "Невалидные координаты"}},
        tags=["Location"],
        summary="Обновить геолокацию",
    )
    async def update_location(update: LocationUpdate, request: Request) -> LocationResponse:
        """Сохраняет координаты и публикует событие изменения."""
        service = get_service(request)
        try:
            position = await service.update_location(
                driver_id=update.driver_id,
                lat=update.lat,
                lng=update.lng,
                timestamp=update.timestamp,
            )
        except ValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        return LocationResponse.from_position(position)

    @app.get(
        "/api/v1/location",
        response_model=list[LocationResponse],
        tags=["Location"],
        summary="Последние локации",
    )
    async def list_locations(
        request: Request,
        limit: int = Query(default=500, ge=1, le=5000),
    ) -> list[LocationResponse]:
        service = get_service(request)
        positions = await service.list_locations(limit=limit)
        return [LocationResponse.from_position(p) for p in positions]

    @app.get(
        "/api/v1/location/{driver_id}",
        response_model=LocationResponse,
        responses={404: {"description": "Водитель не найден"}},
        tags=["Location"],
        summary="Последняя локация водителя",
    )
    async def get_driver_location(driver_id: str, request: Request) -> LocationResponse:
        """Получить последнюю известную локацию водителя."""
        position = await get_service(request).get_driver_location(driver_id)
        if position is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Водитель не найден")
        return LocationResponse.from_position(position)

    @app.delete(
        "/api/v1/location/{driver_id}",
        responses={404: {"description": "Водитель не найден"}},
        tags=["Location"],
        summary="Удалить локацию водителя",
    )
    async def remove_driver(driver_id: str, request: Request) -> dict[str, str]:
        """Вызывается когда водитель уходит offline."""
        if not await get_service(request).remove_driver(driver_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Водитель не найден")
        return {"status": "removed", "driver_id": driver_id}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.deployment.LOCATION_API_HOST, port=settings.deployment.LOCATION_API_PORT)
