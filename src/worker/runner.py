# src/worker/runner.py
"""
Запускалка планировщика жизненного цикла.
"""

from __future__ import annotations

import asyncio

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.config import settings
from src.core.lifecycle import (
    OrderLifecycleAdvancer,
    OrderRepository,
    TripLifecycleAdvancer,
    TripRepository,
)
from src.infra.database import close_db, init_db
from src.infra.event_bus import close_event_bus, init_event_bus
from src.worker.scheduler import LifecycleScheduler


async def run_scheduler(init_infra: bool = True) -> None:
    """
    Запускает LifecycleScheduler до отмены задачи.

    Args:
        init_infra: Если True, поднимает и закрывает подключения к БД и RabbitMQ.
                    При запуске нескольких компонентов в одном процессе
                    инфраструктура уже инициализирована в main.py.
    """
    await log_info("Запуск LifecycleScheduler...", type_msg=TypeMsg.INFO)

    if init_infra:
        db = await init_db()
        event_bus = await init_event_bus()
    else:
        from src.infra.database import get_db
        from src.infra.event_bus import get_event_bus
        db = get_db()
        event_bus = get_event_bus()

    scheduler = LifecycleScheduler(
        TripLifecycleAdvancer.from_settings(TripRepository(db), settings.lifecycle, event_bus=event_bus),
        OrderLifecycleAdvancer.from_settings(OrderRepository(db), settings.lifecycle, event_bus=event_bus),
        interval_seconds=settings.lifecycle.LIFECYCLE_INTERVAL_SECONDS,
    )

    try:
        await scheduler.start()

        # Ждём завершения (Ctrl+C)
        while True:
            await asyncio.sleep(1)

    except asyncio.CancelledError:
        await log_info("Получен сигнал остановки", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}")
    finally:
        await scheduler.stop()

        if init_infra:
            await close_event_bus()
            await close_db()

        await log_info("Планировщик остановлен", type_msg=TypeMsg.INFO)


def main() -> None:
    """Точка входа."""
    try:
        asyncio.run(run_scheduler())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
