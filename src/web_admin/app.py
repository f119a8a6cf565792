# src/web_admin/app.py
"""
Админ-панель на NiceGUI: живая карта водителей.
"""

import os

# Настройка пути хранения локальных данных NiceGUI (чтобы не создавать папку .nicegui в корне)
os.environ.setdefault("NICEGUI_STORAGE_PATH", "/tmp/delivery_nicegui_admin")

from nicegui import Client, app, ui

from src.common.constants import FeedKind, TypeMsg
from src.common.logger import log_info
from src.config import settings
from src.core.tracking import DriverLocationRepository, LiveLocationTracker, build_feed
from src.web_admin.components.sidebar import create_layout
from src.web_admin.views.driver_map import render_driver_map


TITLE = "Delivery Admin"

# Подключения процесса, создаются в startup
_resources: dict[str, object] = {}


def build_tracker() -> LiveLocationTracker:
    """Новый трекер для одной вкладки браузера."""
    db = _resources.get("db")
    if db is None:
        raise RuntimeError("Web Admin не инициализирован")

    feed = build_feed(settings.tracker, redis=_resources.get("redis"), db=db)
    return LiveLocationTracker(
        DriverLocationRepository(db),
        feed,
        initial_fetch_limit=settings.tracker.TRACKER_INITIAL_FETCH_LIMIT,
        queue_maxsize=settings.tracker.TRACKER_QUEUE_MAXSIZE,
    )


def create_app() -> None:

    @ui.page("/")
    async def index_page() -> None:
        create_layout(TITLE)
        ui.label("Добро пожаловать в админ-панель!").classes("text-h4")
        ui.link("Открыть карту водителей", "/drivers/map")

    @ui.page("/drivers/map")
    async def page_driver_map(client: Client) -> None:
        create_layout(TITLE)
        await render_driver_map(client, build_tracker(), settings.map)

    @app.on_startup
    async def startup() -> None:
        from src.infra.database import init_db
        from src.infra.redis_client import init_redis

        _resources["db"] = await init_db(apply_schema=False)
        if FeedKind(settings.tracker.TRACKER_FEED) == FeedKind.REDIS:
            _resources["redis"] = await init_redis()
        await log_info("Web Admin UI started", type_msg=TypeMsg.INFO)

    @app.on_shutdown
    async def shutdown() -> None:
        from src.infra.database import close_db
        from src.infra.redis_client import close_redis

        await close_redis()
        await close_db()
        _resources.clear()


def run_web(host: str = "0.0.0.0", port: int = 8081, reload: bool = False) -> None:
    # root_path для работы за прокси (Nginx /admin/)
    app.root_path = "/admin"
    create_app()
    ui.run(
        host=host,
        port=port,
        reload=reload,
        title=TITLE,
        storage_secret=os.getenv("WEB_ADMIN_STORAGE_SECRET", "change-me"),
    )
