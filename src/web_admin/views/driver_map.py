# src/web_admin/views/driver_map.py
"""
Живая карта водителей.

Один трекер на вкладку браузера: подписка открывается при построении
страницы и закрывается при удалении клиента.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nicegui import Client, ui

from src.web_admin.components.map_state import FocusController, MarkerDiff
from src.web_admin.components.tracker_lifetime import release_on_delete

if TYPE_CHECKING:
    from src.config.loader import MapSettings
    from src.core.tracking.tracker import LiveLocationTracker


def _popup_text(driver_id: str, tracker: "LiveLocationTracker") -> str:
    position = tracker.get(driver_id)
    if position is None or position.updated_at is None:
        return f"Водитель {driver_id}"
    return f"Водитель {driver_id}<br>{position.updated_at:%H:%M:%S}"


async def render_driver_map(
    client: Client,
    tracker: "LiveLocationTracker",
    map_settings: "MapSettings",
) -> None:
    """Строит карту, селектор водителя и привязывает трекер к жизни клиента."""
    ui.label("🗺️ Водители на карте").classes("text-2xl font-bold mb-4")

    with ui.row().classes("items-center gap-4 mb-2"):
        driver_select = ui.select(
            options=[],
            label="Водитель",
            with_input=True,
            clearable=True,
            on_change=lambda e: tracker.focus(e.value),
        ).classes("w-64")
        counter = ui.label("Водителей: 0")

    leaflet = ui.leaflet(
        center=(map_settings.MAP_CENTER_LAT, map_settings.MAP_CENTER_LNG),
        zoom=map_settings.MAP_ZOOM,
    ).classes("w-full h-[640px]")

    markers: dict[str, object] = {}
    marker_diff = MarkerDiff()
    focus = FocusController()
    dirty = {"value": True}

    def mark_dirty(_snapshot: object) -> None:
        dirty["value"] = True

    def render() -> None:
        if dirty["value"]:
            dirty["value"] = False
            snapshot = tracker.positions
            changes = marker_diff.update(snapshot)

            for driver_id in changes.removed:
                leaflet.remove_layer(markers.pop(driver_id))
            for driver_id in changes.added:
                position = snapshot[driver_id]
                marker = leaflet.marker(latlng=(position.latitude, position.longitude))
                marker.run_method("bindPopup", _popup_text(driver_id, tracker))
                markers[driver_id] = marker
            for driver_id in changes.moved:
                position = snapshot[driver_id]
                markers[driver_id].move(position.latitude, position.longitude)
                markers[driver_id].run_method("setPopupContent", _popup_text(driver_id, tracker))

            if not changes.is_empty:
                # выбранный водитель остаётся в списке, даже если пропал из трекера
                options = set(snapshot)
                if tracker.focused_driver_id is not None:
                    options.add(tracker.focused_driver_id)
                driver_select.set_options(sorted(options), value=driver_select.value)
                counter.set_text(f"Водителей: {len(snapshot)}")

        target = focus.next_target(tracker.focused_driver_id, tracker.focus_position)
        if target is not None:
            leaflet.run_map_method(
                "flyTo",
                list(target),
                map_settings.MAP_FOCUS_ZOOM,
                {"duration": map_settings.MAP_FLY_DURATION},
            )

    await tracker.initialize()
    await tracker.subscribe(on_change=mark_dirty)
    release = release_on_delete(client, tracker)

    try:
        ui.timer(map_settings.MAP_REFRESH_INTERVAL, render)
    except Exception:
        await release()
        raise
