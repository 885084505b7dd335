# src/shared/models/ride.py
"""
DTO поездок, бронирований и водителей.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.common.constants import BookingStatus, PaymentStatus, RideStatus


class BookingSeats(BaseModel):
    """Бронирование в разрезе расчёта заработка."""

    number_of_seats: int | None = None
    # Цена за место, зафиксированная при бронировании
    price_per_seat: float | None = None
    status: BookingStatus | None = None

    class Config:
        from_attributes = True


class Ride(BaseModel):
    """Завершённая поездка водителя с учитываемыми бронированиями."""

    id: int
    driver_id: int
    status: RideStatus = RideStatus.COMPLETED
    price_per_seat: float = 0.0
    distance: float | None = None
    from_city: str | None = None
    to_city: str | None = None
    updated_at: datetime | None = None
    bookings: list[BookingSeats] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @property
    def seats_booked(self) -> int:
        """Количество забронированных мест (пустое значение считается как 1)."""
        return sum(b.number_of_seats or 1 for b in self.bookings)


class Booking(BaseModel):
    """Бронирование с платёжными полями и данными пассажира."""

    id: int
    ride_id: int
    rider_id: int
    number_of_seats: int = 1
    price_per_seat: float | None = None
    status: BookingStatus = BookingStatus.CONFIRMED

    payment_intent_id: str | None = None
    payment_status: PaymentStatus | None = None
    payment_amount: float | None = None
    payment_currency: str | None = None
    refund_amount: float | None = None
    refunded_at: datetime | None = None

    # Поездка и пассажир
    ride_price_per_seat: float | None = None
    rider_email: str | None = None
    rider_name: str | None = None
    rider_customer_id: str | None = None

    class Config:
        from_attributes = True

    @property
    def effective_price_per_seat(self) -> float:
        """Цена за место с приоритетом зафиксированной при бронировании."""
        if self.price_per_seat is not None:
            return self.price_per_seat
        return self.ride_price_per_seat or 0.0


class DriverAccount(BaseModel):
    """Водитель и его подключённый аккаунт выплат."""

    id: int
    full_name: str | None = None
    email: str | None = None
    is_driver: bool = False
    stripe_account_id: str | None = None
    payouts_enabled: bool = False

    class Config:
        from_attributes = True
