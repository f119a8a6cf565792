# src/core/tracking/models.py
"""
Модели трекера геопозиций водителей.
"""

from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.common.constants import ChangeEventType


class DriverPosition(BaseModel):
    """
    Последняя известная позиция водителя.

    На проводе координаты называются lat/lng и могут прийти строками,
    поэтому значения приводятся к float при валидации.
    """

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    driver_id: str = Field(..., min_length=1, description="ID водителя")
    latitude: float = Field(..., ge=-90, le=90, alias="lat", description="Широта")
    longitude: float = Field(..., ge=-180, le=180, alias="lng", description="Долгота")
    updated_at: Optional[datetime] = Field(None, description="Время последнего обновления")

    @field_validator("driver_id", mode="before")
    @classmethod
    def coerce_driver_id(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def coerce_coordinate(cls, v: Any) -> float:
        """Число или числовая строка -> float. NaN и бесконечность отклоняются."""
        if isinstance(v, bool) or v is None:
            raise ValueError("координата должна быть числом")
        if isinstance(v, str):
            v = v.strip()
        try:
            value = float(v)
        except OverflowError as e:
            raise ValueError("координата вне диапазона float") from e
        if not math.isfinite(value):
            raise ValueError("координата должна быть конечным числом")
        return value

    def to_wire(self) -> dict[str, Any]:
        """Представление строки таблицы driver_locations."""
        return {
            "driver_id": self.driver_id,
            "lat": self.latitude,
            "lng": self.longitude,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ChangeEvent(BaseModel):
    """
    Событие изменения строки driver_locations.
    Формат: {"eventType": "INSERT|UPDATE|DELETE", "new": {...}|null, "old": {...}|null}
    """

    model_config = ConfigDict(populate_by_name=True)

    event_type: ChangeEventType = Field(..., alias="eventType")
    new: Optional[dict[str, Any]] = None
    old: Optional[dict[str, Any]] = None

    @field_validator("event_type", mode="before")
    @classmethod
    def normalize_event_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v

    @classmethod
    def from_raw(cls, raw: Any) -> ChangeEvent:
        """
        Разбирает событие из dict, JSON-строки или bytes.

        Raises:
            ValueError: если payload не является объектом события
        """
        if isinstance(raw, ChangeEvent):
            return raw
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        if isinstance(raw, str):
            raw = json.loads(raw)
        if not isinstance(raw, dict):
            raise ValueError(f"Ожидался объект события, получено {type(raw).__name__}")
        return cls.model_validate(raw)

    @property
    def is_delete(self) -> bool:
        return self.event_type == ChangeEventType.DELETE

    def deleted_driver_id(self) -> Optional[str]:
        """ID удалённого водителя из old-образа строки, None если ключа нет."""
        if not self.old:
            return None
        driver_id = self.old.get("driver_id")
        if driver_id is None or driver_id == "":
            return None
        return str(driver_id)

    def new_position(self) -> DriverPosition:
        """
        Позиция из new-образа строки.

        Raises:
            ValueError: если new отсутствует или невалиден
        """
        if not self.new:
            raise ValueError(f"Событие {self.event_type.value} без new-образа строки")
        return DriverPosition.model_validate(self.new)
