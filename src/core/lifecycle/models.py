# src/core/lifecycle/models.py
"""
Модели жизненного цикла поездок и заказов.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.common.constants import OrderStatus, TripStatus


class TripRecord(BaseModel):
    """Поездка (заявка на перевозку или доставку)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    driver_id: Optional[str] = None
    status: TripStatus
    created_at: datetime
    fare: float = 0.0
    distance: Optional[float] = None
    payment_status: Optional[str] = None
    actual_duration: Optional[int] = None

    @field_validator("id", "user_id", "driver_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: object) -> object:
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("fare", "distance", mode="before")
    @classmethod
    def coerce_numeric(cls, v: object) -> object:
        # asyncpg отдаёт NUMERIC как Decimal
        if isinstance(v, Decimal):
            return float(v)
        return v


class OrderRecord(BaseModel):
    """Заказ магазина/ресторана."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    order_number: str
    status: OrderStatus
    payment_status: str = "pending"
    created_at: datetime

    @field_validator("id", "user_id", "order_number", mode="before")
    @classmethod
    def coerce_ids(cls, v: object) -> object:
        if isinstance(v, str):
            return v
        return str(v)


class TripAdvanceResult(BaseModel):
    """Итог одного прохода по поездкам."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    cancelled_count: int = Field(0, alias="cancelledCount")
    completed_count: int = Field(0, alias="completedCount")
    timestamp: str


class OrderAdvanceResult(BaseModel):
    """Итог одного прохода по заказам."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    updated_count: int = Field(0, alias="updatedCount")
    confirmed_count: int = Field(0, alias="confirmedCount")
    ready_count: int = Field(0, alias="readyCount")
    timestamp: str


class StatusChangeRequest(BaseModel):
    """Запрос на смену статуса поездки."""
    status: TripStatus
    driver_id: Optional[str] = None
