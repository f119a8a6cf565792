# src/core/lifecycle/repository.py
"""
Репозитории поездок и заказов для смены статусов.

Все переходы выполняются условным UPDATE с проверкой текущего статуса
(WHERE status = <ожидаемый>): если запись уже сдвинул другой процесс,
UPDATE ничего не возвращает и переход считается не состоявшимся.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from src.common.constants import OrderStatus, PaymentStatus, TripStatus
from src.common.logger import log_error
from src.core.lifecycle.models import OrderRecord, TripRecord
from src.core.notifications.repository import NotificationCreate, NotificationRepository

if TYPE_CHECKING:
    from src.infra.database import DatabaseManager


TRIP_COLUMNS = """
    id, user_id, driver_id, status, created_at, fare, distance,
    payment_status, actual_duration
"""

ORDER_COLUMNS = "id, user_id, order_number, status, payment_status, created_at"


class TripRepository:
    """Репозиторий поездок."""

    def __init__(
        self,
        db: "DatabaseManager",
        notifications: NotificationRepository | None = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
            notifications: Репозиторий уведомлений, пишет в той же транзакции
        """
        self._db = db
        self._notifications = notifications or NotificationRepository(db)

    async def get_by_id(self, trip_id: str) -> Optional[TripRecord]:
        """Получает поездку по ID."""
        try:
            row = await self._db.fetchrow(
                f"SELECT {TRIP_COLUMNS} FROM trips WHERE id = $1",
                trip_id,
            )
        except Exception as e:
            await log_error(f"Ошибка получения поездки {trip_id}: {e}")
            return None

        if row is None:
            return None
        return TripRecord.model_validate(dict(row))

    async def find_stale(self, status: TripStatus, created_before: datetime) -> list[TripRecord]:
        """
        Поездки в статусе status, созданные раньше created_before.
        Ошибки запроса пробрасываются вызывающему.
        """
        rows = await self._db.fetch(
            f"""
            SELECT {TRIP_COLUMNS}
            FROM trips
            WHERE status = $1 AND created_at < $2
            ORDER BY created_at
            """,
            TripStatus(status).value,
            created_before,
        )
        return [TripRecord.model_validate(dict(row)) for row in rows]

    async def cancel_stale(self, trip: TripRecord, notification: NotificationCreate) -> bool:
        """
        pending → cancelled и уведомление пользователю в одной транзакции.

        Returns:
            False если поездка уже не в pending
        """
        async with self._db.transaction() as conn:
            updated_id = await conn.fetchval(
                """
                UPDATE trips
                SET status = $2, updated_at = NOW()
                WHERE id = $1 AND status = $3
                RETURNING id
                """,
                trip.id,
                TripStatus.CANCELLED.value,
                TripStatus.PENDING.value,
            )
            if updated_id is None:
                return False

            await self._notifications.insert(notification, conn=conn)
        return True

    async def complete_stale(
        self,
        trip: TripRecord,
        actual_duration: int,
        notification: NotificationCreate,
    ) -> bool:
        """
        in_progress → completed, начисление водителю и уведомление
        пользователю в одной транзакции.

        Заработок водителя накапливается атомарным инкрементом на стороне БД.

        Returns:
            False если поездка уже не в in_progress
        """
        async with self._db.transaction() as conn:
            updated_id = await conn.fetchval(
                """
                UPDATE trips
                SET status = $2,
                    actual_duration = $3,
                    payment_status = $4,
                    updated_at = NOW()
                WHERE id = $1 AND status = $5
                RETURNING id
                """,
                trip.id,
                TripStatus.COMPLETED.value,
                actual_duration,
                PaymentStatus.PENDING.value,
                TripStatus.IN_PROGRESS.value,
            )
            if updated_id is None:
                return False

            if trip.driver_id:
                await conn.execute(
                    """
                    UPDATE drivers
                    SET total_earnings = total_earnings + $2,
                        total_trips = total_trips + 1
                    WHERE id = $1
                    """,
                    trip.driver_id,
                    trip.fare,
                )

            await self._notifications.insert(notification, conn=conn)
        return True

    async def transition(
        self,
        trip_id: str,
        from_status: TripStatus,
        to_status: TripStatus,
        *,
        driver_id: str | None = None,
        actual_duration: int | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> Optional[TripRecord]:
        """
        Условный переход статуса для действий водителя/пользователя.

        driver_id, actual_duration и payment_status записываются только если переданы.

        Returns:
            Обновлённая поездка или None, если статус уже изменился
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE trips
            SET status = $2,
                driver_id = COALESCE($4, driver_id),
                actual_duration = COALESCE($5, actual_duration),
                payment_status = COALESCE($6, payment_status),
                updated_at = NOW()
            WHERE id = $1 AND status = $3
            RETURNING {TRIP_COLUMNS}
            """,
            trip_id,
            TripStatus(to_status).value,
            TripStatus(from_status).value,
            driver_id,
            actual_duration,
            PaymentStatus(payment_status).value if payment_status is not None else None,
        )
        if row is None:
            return None
        return TripRecord.model_validate(dict(row))


class OrderRepository:
    """Репозиторий заказов."""

    def __init__(
        self,
        db: "DatabaseManager",
        notifications: NotificationRepository | None = None,
    ) -> None:
        self._db = db
        self._notifications = notifications or NotificationRepository(db)

    async def find_stale(
        self,
        status: OrderStatus,
        created_before: datetime,
        payment_status: PaymentStatus | None = None,
    ) -> list[OrderRecord]:
        """
        Заказы в статусе status, созданные раньше created_before,
        опционально с фильтром по статусу оплаты.
        """
        query = f"""
            SELECT {ORDER_COLUMNS}
            FROM orders
            WHERE status = $1 AND created_at < $2
        """
        args: list[object] = [OrderStatus(status).value, created_before]
        if payment_status is not None:
            query += " AND payment_status = $3"
            args.append(PaymentStatus(payment_status).value)
        query += " ORDER BY created_at"

        rows = await self._db.fetch(query, *args)
        return [OrderRecord.model_validate(dict(row)) for row in rows]

    async def advance(
        self,
        order: OrderRecord,
        from_status: OrderStatus,
        to_status: OrderStatus,
        notification: NotificationCreate,
    ) -> bool:
        """
        Условный переход заказа и уведомление в одной транзакции.

        Returns:
            False если заказ уже не в from_status
        """
        async with self._db.transaction() as conn:
            updated_id = await conn.fetchval(
                """
                UPDATE orders
                SET status = $2, updated_at = NOW()
                WHERE id = $1 AND status = $3
                RETURNING id
                """,
                order.id,
                OrderStatus(to_status).value,
                OrderStatus(from_status).value,
            )
            if updated_id is None:
                return False

            await self._notifications.insert(notification, conn=conn)
        return True
