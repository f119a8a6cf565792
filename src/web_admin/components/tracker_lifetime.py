# src/web_admin/components/tracker_lifetime.py
"""
Привязка подписки трекера к жизни клиента NiceGUI.

Подписка освобождается при удалении клиента, а не при обрыве сокета:
после кратковременного переподключения страница продолжает получать
обновления.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

from src.common.logger import log_info

if TYPE_CHECKING:
    from nicegui import Client

    from src.core.tracking.tracker import LiveLocationTracker


def release_on_delete(
    client: "Client",
    tracker: "LiveLocationTracker",
) -> Callable[[], Awaitable[None]]:
    """
    Регистрирует освобождение трекера в client.on_delete.

    Returns:
        Функция освобождения; повторные вызовы ничего не делают
    """
    released = False

    async def release() -> None:
        nonlocal released
        if released:
            return
        released = True
        await tracker.unsubscribe()
        await log_info(f"Карта водителей закрыта (клиент {client.id}), подписка освобождена")

    client.on_delete(release)
    return release
