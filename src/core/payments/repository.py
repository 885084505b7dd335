# src/core/payments/repository.py
"""
Репозиторий платёжных полей бронирований.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from asyncpg import Record

from src.common.constants import PaymentStatus
from src.infra.database import DatabaseManager
from src.shared.models.ride import Booking


_BOOKING_SELECT = """
    SELECT b.id, b.ride_id, b.rider_id, b.number_of_seats, b.price_per_seat, b.status,
           b.payment_intent_id, b.payment_status, b.payment_amount, b.payment_currency,
           b.refund_amount, b.refunded_at,
           r.price_per_seat AS ride_price_per_seat,
           u.email AS rider_email, u.full_name AS rider_name,
           u.stripe_customer_id AS rider_customer_id
    FROM bookings b
    JOIN rides r ON r.id = b.ride_id
    JOIN users u ON u.id = b.rider_id
"""

_MONEY_FIELDS = ("price_per_seat", "payment_amount", "refund_amount", "ride_price_per_seat")


def _decimal(value: float | None) -> Decimal | None:
    return None if value is None else Decimal(str(value))


class BookingRepository:
    """Репозиторий бронирований."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_by_id(self, booking_id: int) -> Booking | None:
        """Бронирование с ценой поездки и данными пассажира."""
        row = await self._db.fetchrow(f"{_BOOKING_SELECT} WHERE b.id = $1", booking_id)
        return self._row_to_booking(row) if row else None

    async def get_by_payment_intent(self, payment_intent_id: str) -> Booking | None:
        """Первое бронирование, оплаченное этим PaymentIntent."""
        row = await self._db.fetchrow(
            f"{_BOOKING_SELECT} WHERE b.payment_intent_id = $1 ORDER BY b.id LIMIT 1",
            payment_intent_id,
        )
        return self._row_to_booking(row) if row else None

    async def mark_captured(self, booking_id: int, amount: float, currency: str) -> None:
        await self._db.execute(
            """
            UPDATE bookings
            SET payment_status = $2, payment_amount = $3, payment_currency = $4, updated_at = $5
            WHERE id = $1
            """,
            booking_id,
            PaymentStatus.CAPTURED.value,
            _decimal(amount),
            currency,
            datetime.now(timezone.utc),
        )

    async def mark_refunded(
        self,
        booking_id: int,
        status: PaymentStatus,
        refund_amount: float,
        refunded_at: datetime,
    ) -> None:
        await self._db.execute(
            """
            UPDATE bookings
            SET payment_status = $2, refund_amount = $3, refunded_at = $4, updated_at = $4
            WHERE id = $1
            """,
            booking_id,
            status.value,
            _decimal(refund_amount),
            refunded_at,
        )

    async def mark_payment_failed(self, booking_id: int) -> None:
        await self._db.execute(
            "UPDATE bookings SET payment_status = $2, updated_at = $3 WHERE id = $1",
            booking_id,
            PaymentStatus.FAILED.value,
            datetime.now(timezone.utc),
        )

    async def replace_payment(
        self,
        booking_id: int,
        payment_intent_id: str,
        status: PaymentStatus,
        amount: float,
        currency: str,
    ) -> None:
        """Перезаписывает платёжные поля бронирования новым PaymentIntent."""
        await self._db.execute(
            """
            UPDATE bookings
            SET payment_intent_id = $2, payment_status = $3,
                payment_amount = $4, payment_currency = $5, updated_at = $6
            WHERE id = $1
            """,
            booking_id,
            payment_intent_id,
            status.value,
            _decimal(amount),
            currency,
            datetime.now(timezone.utc),
        )

    async def set_customer_id(self, user_id: int, customer_id: str) -> None:
        await self._db.execute(
            "UPDATE users SET stripe_customer_id = $2, updated_at = $3 WHERE id = $1",
            user_id,
            customer_id,
            datetime.now(timezone.utc),
        )

    @staticmethod
    def _row_to_booking(row: Record) -> Booking:
        data = dict(row)
        for name in _MONEY_FIELDS:
            if data.get(name) is not None:
                data[name] = float(data[name])
        return Booking.model_validate(data)
