# src/web_admin/components/sidebar.py
"""
Шапка и боковое меню админки.
"""

from __future__ import annotations

from nicegui import ui


MENU_ITEMS: list[tuple[str, str]] = [
    ("🗺️ Карта водителей", "/drivers/map"),
]


def create_layout(title: str) -> None:
    """Создаёт шапку с кнопкой меню и левую панель."""
    with ui.header().classes(replace="row items-center"):
        ui.button(on_click=lambda: left_drawer.toggle(), icon="menu").props("flat color=white")
        ui.label(title).classes("text-h6 ml-4")

    with ui.left_drawer(value=True) as left_drawer:
        ui.label("Меню").classes("text-h6 q-mb-md")
        for label, path in MENU_ITEMS:
            _menu_item(label, path)


def _menu_item(label: str, path: str) -> None:
    """Создаёт пункт меню."""
    ui.button(
        label,
        on_click=lambda: ui.navigate.to(path),
    ).props("flat align=left").classes("w-full justify-start")
