# src/worker/scheduler.py
"""
Встроенный планировщик жизненного цикла.
Альтернатива внешнему cron: запускает оба прохода по интервалу.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from src.common.logger import log_error, log_info
from src.worker.base import PeriodicWorker

if TYPE_CHECKING:
    from src.core.lifecycle import OrderLifecycleAdvancer, TripLifecycleAdvancer


class LifecycleScheduler(PeriodicWorker):
    """Периодически вызывает TripLifecycleAdvancer и OrderLifecycleAdvancer."""

    def __init__(
        self,
        trip_advancer: "TripLifecycleAdvancer",
        order_advancer: Optional["OrderLifecycleAdvancer"] = None,
        interval_seconds: float = 300,
    ) -> None:
        super().__init__(interval_seconds)
        self._trip_advancer = trip_advancer
        self._order_advancer = order_advancer

    @property
    def name(self) -> str:
        return "lifecycle_scheduler"

    async def tick(self) -> None:
        """
        Проход по поездкам, затем по заказам.
        Ошибка прохода по поездкам не отменяет проход по заказам;
        первая ошибка пробрасывается после обоих проходов.
        """
        first_error: Optional[Exception] = None

        try:
            trips = await self._trip_advancer.run()
            await log_info(
                f"Поездки: отменено {trips.cancelled_count}, завершено {trips.completed_count}"
            )
        except Exception as e:
            await log_error(f"Проход по поездкам завершился ошибкой: {e}")
            first_error = e

        if self._order_advancer is not None:
            try:
                orders = await self._order_advancer.run()
                await log_info(
                    f"Заказы: подтверждено {orders.confirmed_count}, готово {orders.ready_count}"
                )
            except Exception as e:
                await log_error(f"Проход по заказам завершился ошибкой: {e}")
                first_error = first_error or e

        if first_error is not None:
            raise first_error
