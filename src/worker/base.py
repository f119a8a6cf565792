# src/worker/base.py
"""
Базовый класс для периодических воркеров.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg


class PeriodicWorker(ABC):
    """
    Воркер, выполняющий tick() с фиксированным интервалом.
    Ошибка одного tick логируется и не останавливает воркер.
    """

    def __init__(self, interval_seconds: float) -> None:
        """
        Args:
            interval_seconds: Пауза между окончанием одного tick и началом следующего
        """
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._ticks = 0
        self._failures = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Имя воркера."""

    @abstractmethod
    async def tick(self) -> None:
        """Одна итерация работы."""

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Запускает воркер."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        await log_info(
            f"Воркер {self.name} запущен, интервал {self.interval_seconds} с",
            type_msg=TypeMsg.INFO,
        )

    async def stop(self) -> None:
        """Останавливает воркер."""
        if not self._running:
            return

        self._running = False
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        await log_info(f"Воркер {self.name} остановлен", type_msg=TypeMsg.INFO)

    async def run_once(self) -> bool:
        """
        Выполняет один tick с перехватом ошибок.

        Returns:
            True если tick завершился без исключения
        """
        self._ticks += 1
        try:
            await self.tick()
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failures += 1
            await log_error(f"Ошибка в воркере {self.name}: {e}", exc_info=True)
            return False

    async def _loop(self) -> None:
        while self._running:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def get_stats(self) -> dict[str, int]:
        return {"ticks": self._ticks, "failures": self._failures}
