# src/core/payouts/repository.py
"""
Репозиторий водителей, завершённых поездок и выплат.

Ошибки БД не перехватываются: их обрабатывает вызывающий сервис
(в еженедельном запуске ошибка относится к одному водителю).
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from asyncpg import Connection, Record

from src.common.constants import (
    OPEN_PAYOUT_STATUSES,
    QUALIFYING_BOOKING_STATUSES,
    PayoutStatus,
    RideStatus,
)
from src.infra.database import DatabaseManager, advisory_key, try_advisory_xact_lock
from src.shared.models.payout import Payout, PayoutCreate
from src.shared.models.ride import BookingSeats, DriverAccount, Ride


_PAYOUT_COLUMNS = """
    id, driver_id, stripe_payout_id, transfer_id, amount, currency, status,
    payout_method, description, failure_code, failure_message, arrival_date,
    settlement_window, created_at, updated_at
"""


def _money(value: Any) -> float | None:
    """DECIMAL из asyncpg приходит как Decimal."""
    return None if value is None else float(value)


class PayoutRepository:
    """Репозиторий выплат."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    # =========================================================================
    # ВОДИТЕЛИ
    # =========================================================================

    async def get_eligible_drivers(self) -> list[DriverAccount]:
        """Водители с подключённым аккаунтом выплат."""
        rows = await self._db.fetch(
            """
            SELECT id, full_name, email, is_driver, stripe_account_id, payouts_enabled
            FROM users
            WHERE is_driver = TRUE
              AND stripe_account_id IS NOT NULL
            ORDER BY id
            """
        )
        return [DriverAccount.model_validate(dict(row)) for row in rows]

    async def get_driver(self, driver_id: int) -> DriverAccount | None:
        row = await self._db.fetchrow(
            """
            SELECT id, full_name, email, is_driver, stripe_account_id, payouts_enabled
            FROM users
            WHERE id = $1
            """,
            driver_id,
        )
        if row is None:
            return None
        return DriverAccount.model_validate(dict(row))

    async def set_payouts_enabled(self, driver_id: int, enabled: bool) -> None:
        """Сохраняет флаг payouts_enabled подключённого аккаунта."""
        await self._db.execute(
            """
            UPDATE users
            SET payouts_enabled = $2, updated_at = NOW()
            WHERE id = $1 AND payouts_enabled IS DISTINCT FROM $2
            """,
            driver_id,
            enabled,
        )

    # =========================================================================
    # ПОЕЗДКИ
    # =========================================================================

    async def get_completed_rides(
        self,
        driver_id: int,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[Ride]:
        """
        Завершённые поездки водителя с учитываемыми бронированиями.

        Args:
            driver_id: ID водителя
            since: Нижняя граница updated_at (включительно)
            until: Верхняя граница updated_at (не включительно)

        Returns:
            Поездки, от новых к старым
        """
        ride_rows = await self._db.fetch(
            """
            SELECT id, driver_id, status, price_per_seat, distance,
                   from_city, to_city, updated_at
            FROM rides
            WHERE driver_id = $1
              AND status = $2
              AND ($3::timestamptz IS NULL OR updated_at >= $3)
              AND ($4::timestamptz IS NULL OR updated_at < $4)
            ORDER BY updated_at DESC
            """,
            driver_id,
            RideStatus.COMPLETED.value,
            since,
            until,
        )
        if not ride_rows:
            return []

        ride_ids = [row["id"] for row in ride_rows]
        booking_rows = await self._db.fetch(
            """
            SELECT ride_id, number_of_seats, price_per_seat, status
            FROM bookings
            WHERE ride_id = ANY($1::int[])
              AND status = ANY($2::text[])
            """,
            ride_ids,
            list(QUALIFYING_BOOKING_STATUSES),
        )

        bookings_by_ride: dict[int, list[BookingSeats]] = {}
        for row in booking_rows:
            bookings_by_ride.setdefault(row["ride_id"], []).append(
                BookingSeats(
                    number_of_seats=row["number_of_seats"],
                    price_per_seat=_money(row["price_per_seat"]),
                    status=row["status"],
                )
            )

        return [self._row_to_ride(row, bookings_by_ride.get(row["id"], [])) for row in ride_rows]

    async def count_completed_rides(self, driver_id: int, since: datetime | None = None) -> int:
        """Количество завершённых поездок водителя."""
        count = await self._db.fetchval(
            """
            SELECT COUNT(*)
            FROM rides
            WHERE driver_id = $1
              AND status = $2
              AND ($3::timestamptz IS NULL OR updated_at >= $3)
            """,
            driver_id,
            RideStatus.COMPLETED.value,
            since,
        )
        return int(count or 0)

    # =========================================================================
    # ВЫПЛАТЫ
    # =========================================================================

    async def sum_pending_payouts(self, driver_id: int, since: datetime) -> float:
        """Сумма незавершённых (pending/processing) выплат, созданных в окне."""
        total = await self._db.fetchval(
            """
            SELECT COALESCE(SUM(amount), 0)
            FROM payouts
            WHERE driver_id = $1
              AND status = ANY($2::text[])
              AND created_at >= $3
            """,
            driver_id,
            list(OPEN_PAYOUT_STATUSES),
            since,
        )
        return _money(total) or 0.0

    async def claim_settlement(self, conn: Connection, driver_id: int, settlement_window: str) -> bool:
        """
        Закрепляет окно расчёта за текущей транзакцией.

        Берёт advisory-блокировку водителя на окно и проверяет, что выплата
        за это окно ещё не записана. Вызывать внутри db.transaction().

        Returns:
            False если окно уже занято другим запуском или выплата уже есть
        """
        if not await try_advisory_xact_lock(conn, advisory_key("payout", driver_id, settlement_window)):
            return False

        existing = await conn.fetchval(
            """
            SELECT id
            FROM payouts
            WHERE driver_id = $1 AND settlement_window = $2
            """,
            driver_id,
            settlement_window,
        )
        return existing is None

    async def create_payout(self, conn: Connection, data: PayoutCreate) -> Payout:
        """
        Записывает выплату.

        Уникальность (driver_id, settlement_window) гарантирует одну
        выплату на окно: повторная вставка падает с UniqueViolationError.
        """
        row = await conn.fetchrow(
            f"""
            INSERT INTO payouts (
                driver_id, stripe_payout_id, transfer_id, amount, currency, status,
                payout_method, description, failure_message, arrival_date, settlement_window
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING {_PAYOUT_COLUMNS}
            """,
            data.driver_id,
            data.stripe_payout_id,
            data.transfer_id,
            Decimal(str(data.amount)),
            data.currency,
            data.status.value,
            data.payout_method.value,
            data.description,
            data.failure_message,
            data.arrival_date,
            data.settlement_window,
        )
        return self._row_to_payout(row)

    async def update_payout_status(
        self,
        external_id: str,
        status: PayoutStatus,
        failure_code: str | None = None,
        failure_message: str | None = None,
    ) -> int:
        """
        Обновляет статус выплаты по ID выплаты или перевода в Stripe.

        Returns:
            Количество обновлённых записей
        """
        result = await self._db.execute(
            """
            UPDATE payouts
            SET status = $2,
                failure_code = $3,
                failure_message = $4,
                updated_at = $5
            WHERE stripe_payout_id = $1 OR transfer_id = $1
            """,
            external_id,
            status.value,
            failure_code,
            failure_message,
            datetime.now(timezone.utc),
        )
        # asyncpg возвращает статус команды: "UPDATE <n>"
        try:
            return int(result.split()[-1])
        except (AttributeError, ValueError, IndexError):
            return 0

    async def list_payouts(self, driver_id: int, limit: int = 20, offset: int = 0) -> list[Payout]:
        rows = await self._db.fetch(
            f"""
            SELECT {_PAYOUT_COLUMNS}
            FROM payouts
            WHERE driver_id = $1
            ORDER BY created_at DESC
            LIMIT $2 OFFSET $3
            """,
            driver_id,
            limit,
            offset,
        )
        return [self._row_to_payout(row) for row in rows]

    async def count_payouts(self, driver_id: int) -> int:
        count = await self._db.fetchval(
            "SELECT COUNT(*) FROM payouts WHERE driver_id = $1",
            driver_id,
        )
        return int(count or 0)

    # =========================================================================
    # МАППИНГ
    # =========================================================================

    @staticmethod
    def _row_to_ride(row: Record, bookings: list[BookingSeats]) -> Ride:
        return Ride(
            id=row["id"],
            driver_id=row["driver_id"],
            status=row["status"],
            price_per_seat=_money(row["price_per_seat"]) or 0.0,
            distance=row["distance"],
            from_city=row["from_city"],
            to_city=row["to_city"],
            updated_at=row["updated_at"],
            bookings=bookings,
        )

    @staticmethod
    def _row_to_payout(row: Record) -> Payout:
        data = dict(row)
        data["amount"] = _money(data["amount"]) or 0.0
        return Payout.model_validate(data)
