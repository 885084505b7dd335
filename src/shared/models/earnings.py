# src/shared/models/earnings.py
"""
DTO заработка водителя.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class EarningsBreakdown(BaseModel):
    """Разбивка заработка за поездку: gross, комиссии и net."""

    gross_earnings: float = 0.0
    processing_fee: float = 0.0
    commission: float = 0.0
    total_fees: float = 0.0
    net_earnings: float = 0.0


class RideEarnings(BaseModel):
    """Заработок по одной поездке."""

    ride_id: int
    date: datetime | None = None
    from_city: str | None = None
    to_city: str | None = None
    seats_booked: int = 0
    price_per_seat: float = 0.0
    distance: float = 0.0
    earnings: float = 0.0
    breakdown: EarningsBreakdown


class DriverEarningsReport(BaseModel):
    """Сводный отчёт о заработке водителя."""

    driver_id: int
    total: float = 0.0
    total_rides: int = 0
    total_seats_booked: int = 0
    total_distance: float = 0.0
    average_per_ride: float = 0.0
    by_date: dict[str, float] = Field(default_factory=dict)
    recent_rides: list[RideEarnings] = Field(default_factory=list)
    currency: str = "USD"


class EarningsSummary(BaseModel):
    """Краткая сводка: поездки всего и за текущее окно выплат."""

    driver_id: int
    total_rides: int = 0
    window_rides: int = 0
    window_net_earnings: float = 0.0
    window_start: datetime
    window_end: datetime
