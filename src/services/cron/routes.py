# src/services/cron/routes.py
"""
Маршруты Lifecycle API.

Endpoints:
- GET|POST /api/cron/update-trips - проход по поездкам
- GET|POST /api/cron/update-orders - проход по заказам
- GET /api/v1/trips/{trip_id} - поездка
- PATCH /api/v1/trips/{trip_id}/status - смена статуса водителем/пользователем
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from src.common.logger import log_error
from src.core.lifecycle import (
    OrderLifecycleAdvancer,
    StatusChangeRequest,
    TripConflictError,
    TripLifecycleAdvancer,
    TripNotFoundError,
    TripRecord,
    TripService,
)
from src.services.cron.dependencies import (
    get_order_advancer,
    get_trip_advancer,
    get_trip_service,
    verify_cron_secret,
)
from src.shared.models.common import ErrorResponse


cron_router = APIRouter(
    prefix="/api/cron",
    tags=["Cron"],
    dependencies=[Depends(verify_cron_secret)],
)

trips_router = APIRouter(prefix="/api/v1/trips", tags=["Trips"])


def _cron_failure(error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="Cron job failed", message=str(error)).model_dump(exclude_none=True),
    )


# =============================================================================
# CRON
# =============================================================================

@cron_router.api_route("/update-trips", methods=["GET", "POST"])
async def update_trips(
    advancer: TripLifecycleAdvancer = Depends(get_trip_advancer),
) -> Any:
    """Отменяет просроченные pending и завершает зависшие in_progress поездки."""
    try:
        result = await advancer.run()
    except Exception as e:
        await log_error(f"Cron update-trips завершился ошибкой: {e}", exc_info=True)
        return _cron_failure(e)
    return result.model_dump(by_alias=True)


@cron_router.api_route("/update-orders", methods=["GET", "POST"])
async def update_orders(
    advancer: OrderLifecycleAdvancer = Depends(get_order_advancer),
) -> Any:
    """Подтверждает оплаченные заказы и переводит готовящиеся в ready."""
    try:
        result = await advancer.run()
    except Exception as e:
        await log_error(f"Cron update-orders завершился ошибкой: {e}", exc_info=True)
        return _cron_failure(e)
    return result.model_dump(by_alias=True)


# =============================================================================
# TRIPS
# =============================================================================

@trips_router.get(
    "/{trip_id}",
    response_model=TripRecord,
    responses={404: {"model": ErrorResponse, "description": "Поездка не найдена"}},
)
async def get_trip(
    trip_id: str,
    service: TripService = Depends(get_trip_service),
) -> TripRecord:
    trip = await service.get_trip(trip_id)
    if trip is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return trip


@trips_router.patch(
    "/{trip_id}/status",
    response_model=TripRecord,
    responses={
        400: {"model": ErrorResponse, "description": "Недопустимый переход"},
        404: {"model": ErrorResponse, "description": "Поездка не найдена"},
        409: {"model": ErrorResponse, "description": "Статус изменился конкурентно"},
    },
)
async def update_trip_status(
    trip_id: str,
    request: StatusChangeRequest,
    service: TripService = Depends(get_trip_service),
) -> TripRecord:
    try:
        return await service.change_status(trip_id, request.status, request.driver_id)
    except TripNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TripConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
