#!/usr/bin/env python3
# main.py
"""
Главная точка входа приложения.
Запускает Location API, Cron API, планировщик или Web Admin в зависимости от аргументов.
"""

from __future__ import annotations

import asyncio
import signal
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg


# Режимы, работающие внутри asyncio-цикла
ASYNC_MODES = ("location_api", "cron_api", "scheduler", "all")
# NiceGUI управляет собственным циклом событий
BLOCKING_MODES = ("web_admin",)
VALID_MODES = ASYNC_MODES + BLOCKING_MODES

_running_tasks: list[asyncio.Task] = []


def setup_signal_handlers() -> None:
    """Настраивает обработчики сигналов для graceful shutdown."""

    def signal_handler(sig: int) -> None:
        print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
        for task in _running_tasks:
            if not task.done():
                task.cancel()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def _serve(name: str, app_path: str, host: str, port: int) -> None:
    """Запускает FastAPI-приложение через uvicorn в текущем цикле."""
    import uvicorn

    await log_info(f"Запуск {name} на {host}:{port}...", type_msg=TypeMsg.INFO)

    config = uvicorn.Config(
        app_path,
        host=host,
        port=port,
        log_level="debug" if settings.system.DEBUG else "info",
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info(f"{name}: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_location_api() -> None:
    """Location API: приём координат водителей."""
    await _serve(
        "Location API",
        "src.services.location_ingest.app:app",
        settings.deployment.LOCATION_API_HOST,
        settings.deployment.LOCATION_API_PORT,
    )


async def run_cron_api() -> None:
    """Cron API: эндпоинты продвижения статусов для внешнего планировщика."""
    await _serve(
        "Cron API",
        "src.services.cron.app:app",
        settings.deployment.CRON_API_HOST,
        settings.deployment.CRON_API_PORT,
    )


async def run_lifecycle_scheduler() -> None:
    """Встроенный планировщик жизненного цикла."""
    from src.worker.runner import run_scheduler

    await run_scheduler(init_infra=True)


def run_web_admin() -> None:
    """Web Admin с картой водителей (блокирующий вызов)."""
    from src.web_admin.app import run_web

    run_web(
        host=settings.deployment.WEB_ADMIN_HOST,
        port=settings.deployment.WEB_ADMIN_PORT,
    )


async def main(mode: str = "all") -> None:
    """
    Главная функция запуска асинхронных компонентов.

    Args:
        mode: location_api, cron_api, scheduler или all
    """
    setup_logging()
    setup_signal_handlers()

    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION}: запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    if mode == "location_api":
        runners = [run_location_api]
    elif mode == "cron_api":
        runners = [run_cron_api]
    elif mode == "scheduler":
        runners = [run_lifecycle_scheduler]
    elif mode == "all":
        runners = [run_location_api, run_cron_api]
        if settings.lifecycle.LIFECYCLE_SCHEDULER_ENABLED:
            runners.append(run_lifecycle_scheduler)
    else:
        await log_error(f"Неизвестный режим: {mode}")
        return

    _running_tasks[:] = [asyncio.create_task(runner()) for runner in runners]

    try:
        results = await asyncio.gather(*_running_tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                await log_error(f"Компонент завершился с ошибкой: {result}")
    except asyncio.CancelledError:
        await log_info("Отмена всех задач...", type_msg=TypeMsg.INFO)
    finally:
        for task in _running_tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*_running_tasks, return_exceptions=True)
        _running_tasks.clear()
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print("""
Использование:
    python main.py [mode]

Режимы:
    location_api    приём координат водителей (:8090)
    cron_api        эндпоинты /api/cron/update-trips и /api/cron/update-orders (:8092)
    scheduler       встроенный планировщик жизненного цикла
    web_admin       панель администратора с картой водителей (:8081)
    all             location_api + cron_api (+ scheduler при LIFECYCLE_SCHEDULER_ENABLED)

Без аргумента режим берётся из COMPONENT_MODE.
    """)


if __name__ == "__main__":
    mode = settings.system.COMPONENT_MODE

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        mode = arg

    if mode not in VALID_MODES:
        print(f"Ошибка: неизвестный режим '{mode}'")
        print_usage()
        sys.exit(1)

    if mode in BLOCKING_MODES:
        setup_logging()
        run_web_admin()
    else:
        try:
            asyncio.run(main(mode))
        except KeyboardInterrupt:
            pass
