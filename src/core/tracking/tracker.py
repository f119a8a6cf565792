# src/core/tracking/tracker.py
"""
Трекер живых геопозиций водителей.

Держит в памяти отображение driver_id -> DriverPosition:
- начальное заполнение одним пакетным чтением из БД
- дальнейшие изменения из фида (INSERT/UPDATE/DELETE)

Фид только кладёт сырые события в asyncio.Queue, трекер разбирает
и применяет их в собственной задаче, по одному, в порядке поступления.
"""

from __future__ import annotations

import asyncio
import inspect
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncGenerator, Awaitable, Callable, Optional, Union

from src.common.logger import log_debug, log_error, log_info, log_warning
from src.core.tracking.models import ChangeEvent, DriverPosition

if TYPE_CHECKING:
    from src.core.tracking.feeds import ChangeFeed
    from src.core.tracking.repository import DriverLocationRepository


Snapshot = dict[str, DriverPosition]
ChangeCallback = Callable[[Snapshot], Union[None, Awaitable[None]]]


class LiveLocationTracker:
    """
    Eventually-consistent карта позиций водителей для UI.

    Инварианты:
    - не больше одной записи на driver_id
    - запись соответствует последнему применённому событию (по порядку
      поступления, а не по updated_at)
    - событие применяется целиком или не применяется вовсе
    """

    def __init__(
        self,
        repository: "DriverLocationRepository",
        feed: "ChangeFeed",
        *,
        initial_fetch_limit: int = 500,
        queue_maxsize: int = 0,
    ) -> None:
        self._repository = repository
        self._feed = feed
        self._initial_fetch_limit = initial_fetch_limit

        self._positions: dict[str, DriverPosition] = {}
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_maxsize)
        self._drain_task: asyncio.Task | None = None
        self._on_change: Optional[ChangeCallback] = None
        self._subscribed = False
        self._focused_driver_id: Optional[str] = None

        # Статистика
        self._events_applied = 0
        self._events_dropped = 0

    # =========================================================================
    # СОСТОЯНИЕ
    # =========================================================================

    @property
    def positions(self) -> Snapshot:
        """Копия текущей карты позиций."""
        return dict(self._positions)

    @property
    def is_subscribed(self) -> bool:
        return self._subscribed

    @property
    def queue(self) -> asyncio.Queue:
        """Очередь сырых событий, в которую пишет фид."""
        return self._queue

    def get(self, driver_id: str) -> Optional[DriverPosition]:
        return self._positions.get(str(driver_id))

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, driver_id: object) -> bool:
        return str(driver_id) in self._positions

    # =========================================================================
    # НАЧАЛЬНАЯ ЗАГРУЗКА
    # =========================================================================

    async def initialize(self) -> int:
        """
        Заполняет карту одним пакетным чтением.
        Ошибка чтения логируется, карта остаётся как есть.

        Returns:
            Количество загруженных позиций
        """
        try:
            rows = await self._repository.fetch_positions(limit=self._initial_fetch_limit)
        except Exception as e:
            await log_error(f"Не удалось загрузить позиции водителей: {e}")
            return 0

        for position in rows:
            self._positions[position.driver_id] = position

        await log_info(f"Трекер загрузил {len(rows)} позиций водителей")
        return len(rows)

    # =========================================================================
    # ПОДПИСКА
    # =========================================================================

    async def subscribe(self, on_change: Optional[ChangeCallback] = None) -> bool:
        """
        Открывает фид и запускает задачу применения событий.
        Ошибка открытия фида не фатальна: трекер продолжает отдавать
        текущее состояние.

        Returns:
            True если подписка установлена

        Raises:
            RuntimeError: если подписка уже активна
        """
        if self._subscribed:
            raise RuntimeError("Трекер уже подписан на фид")

        self._on_change = on_change
        try:
            await self._feed.open(self._queue)
        except Exception as e:
            await log_error(f"Не удалось открыть фид позиций: {e}")
            self._on_change = None
            return False

        self._subscribed = True
        self._drain_task = asyncio.create_task(self._drain())
        return True

    async def unsubscribe(self) -> None:
        """Останавливает применение событий и закрывает фид. Идемпотентна."""
        was_subscribed = self._subscribed
        self._subscribed = False
        self._on_change = None

        task, self._drain_task = self._drain_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        try:
            await self._feed.close()
        except Exception as e:
            await log_error(f"Ошибка закрытия фида позиций: {e}")

        if was_subscribed:
            await log_info("Трекер отписан от фида позиций")

    @asynccontextmanager
    async def subscription(
        self,
        on_change: Optional[ChangeCallback] = None,
    ) -> AsyncGenerator[LiveLocationTracker, None]:
        """
        Подписка на время жизни потребителя.

        Example:
            async with tracker.subscription(render) as live:
                ...
        """
        await self.subscribe(on_change)
        try:
            yield self
        finally:
            await self.unsubscribe()

    async def _drain(self) -> None:
        """Применяет события из очереди по одному."""
        while True:
            raw = await self._queue.get()
            try:
                await self._consume(raw)
            finally:
                self._queue.task_done()

    async def process_pending(self) -> int:
        """
        Применяет все события, уже лежащие в очереди, без ожидания новых.

        Returns:
            Количество изменивших карту событий
        """
        changed_count = 0
        while True:
            try:
                raw = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            try:
                if await self._consume(raw):
                    changed_count += 1
            finally:
                self._queue.task_done()
        return changed_count

    async def _consume(self, raw: Any) -> bool:
        """Применяет событие из очереди. Любая ошибка отбрасывает только это событие."""
        try:
            changed = await self.apply_event(raw)
        except Exception as e:
            self._events_dropped += 1
            await log_error(f"Ошибка применения события позиции: {e!r}", exc_info=True)
            return False
        if changed:
            await self._notify()
        return changed

    # =========================================================================
    # ПРИМЕНЕНИЕ СОБЫТИЙ
    # =========================================================================

    async def apply_event(self, raw: Any) -> bool:
        """
        Разбирает и применяет одно событие.

        Событие полностью разбирается до изменения карты, поэтому
        невалидный payload не оставляет частичных изменений.

        Returns:
            True если карта изменилась
        """
        try:
            event = ChangeEvent.from_raw(raw)
            if event.is_delete:
                driver_id = event.deleted_driver_id()
                position = None
            else:
                position = event.new_position()
                driver_id = position.driver_id
        except (ValueError, TypeError) as e:
            self._events_dropped += 1
            await log_warning(f"Отброшено невалидное событие позиции: {e}")
            return False

        if position is not None:
            self._positions[driver_id] = position
            self._events_applied += 1
            return True

        if driver_id is None:
            await log_debug("DELETE без driver_id проигнорирован")
            return False

        removed = self._positions.pop(driver_id, None)
        if removed is None:
            return False
        self._events_applied += 1
        return True

    async def _notify(self) -> None:
        callback = self._on_change
        if callback is None:
            return
        try:
            result = callback(self.positions)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            await log_error(f"Ошибка в обработчике изменений трекера: {e}")

    # =========================================================================
    # ФОКУС
    # =========================================================================

    def focus(self, driver_id: Optional[str]) -> Optional[DriverPosition]:
        """
        Запоминает выбранного водителя.

        Returns:
            Текущая позиция водителя или None
        """
        self._focused_driver_id = str(driver_id) if driver_id is not None else None
        return self.focus_position

    @property
    def focused_driver_id(self) -> Optional[str]:
        return self._focused_driver_id

    @property
    def focus_position(self) -> Optional[DriverPosition]:
        """Позиция выбранного водителя, None если он не отслеживается."""
        if self._focused_driver_id is None:
            return None
        return self._positions.get(self._focused_driver_id)

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        return {
            "tracked_drivers": len(self._positions),
            "events_applied": self._events_applied,
            "events_dropped": self._events_dropped,
            "queue_size": self._queue.qsize(),
            "subscribed": self._subscribed,
            "focused_driver_id": self._focused_driver_id,
        }
