# src/web_admin/components/map_state.py
"""
Состояние карты водителей без зависимостей от UI.

- MarkerDiff: какие маркеры добавить, передвинуть, удалить
- FocusController: когда анимировать карту к выбранному водителю
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

from src.core.tracking.models import DriverPosition


LatLng = tuple[float, float]


@dataclass
class MarkerChanges:
    """Изменения маркеров между двумя снимками трекера."""
    added: list[str] = field(default_factory=list)
    moved: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.moved or self.removed)


class MarkerDiff:
    """Помнит координаты отрисованных маркеров и считает разницу со снимком."""

    def __init__(self) -> None:
        self._rendered: dict[str, LatLng] = {}

    @property
    def rendered(self) -> dict[str, LatLng]:
        return dict(self._rendered)

    def update(self, snapshot: Mapping[str, DriverPosition]) -> MarkerChanges:
        changes = MarkerChanges()

        for driver_id in sorted(set(self._rendered) - set(snapshot)):
            del self._rendered[driver_id]
            changes.removed.append(driver_id)

        for driver_id in sorted(snapshot):
            position = snapshot[driver_id]
            latlng = (position.latitude, position.longitude)
            previous = self._rendered.get(driver_id)
            if previous is None:
                changes.added.append(driver_id)
            elif previous != latlng:
                changes.moved.append(driver_id)
            else:
                continue
            self._rendered[driver_id] = latlng

        return changes


class FocusController:
    """
    Решает, нужен ли flyTo.

    Карта летит к водителю при смене фокуса и при каждом новом положении
    выбранного водителя. Если водитель пропал из трекера, повторного
    flyTo нет: карта остаётся на последней известной позиции.
    """

    def __init__(self) -> None:
        self._last_target: Optional[tuple[str, LatLng]] = None

    def next_target(
        self,
        focused_driver_id: Optional[str],
        position: Optional[DriverPosition],
    ) -> Optional[LatLng]:
        if focused_driver_id is None:
            self._last_target = None
            return None
        if position is None:
            return None

        target = (focused_driver_id, (position.latitude, position.longitude))
        if target == self._last_target:
            return None
        self._last_target = target
        return target[1]
