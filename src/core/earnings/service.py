# src/core/earnings/service.py
"""
Сервис отчётов о заработке водителя.
"""

from __future__ import annotations

from datetime import datetime, timezone

from src.core.earnings.calculator import DEFAULT_FEES, FeeSchedule, calculate_ride_earnings
from src.core.payouts.repository import PayoutRepository
from src.core.payouts.schedule import payout_window
from src.infra.database import DatabaseManager
from src.shared.models.earnings import DriverEarningsReport, EarningsSummary, RideEarnings

# Сколько последних поездок включать в отчёт
RECENT_RIDES_LIMIT = 10


class EarningsService:
    """
    Сервис заработка.

    Считает заработок по завершённым поездкам теми же функциями,
    что и еженедельные выплаты.
    """

    def __init__(
        self,
        db: DatabaseManager,
        *,
        repository: PayoutRepository | None = None,
        fees: FeeSchedule = DEFAULT_FEES,
        window_days: int = 7,
        window_mode: str = "rolling",
        tz: str = "UTC",
    ) -> None:
        self._db = db
        self._repo = repository or PayoutRepository(db)
        self._fees = fees
        self._window_days = window_days
        self._window_mode = window_mode
        self._tz = tz

    @classmethod
    def from_settings(cls, db: DatabaseManager) -> EarningsService:
        """Создаёт сервис с параметрами из конфигурации."""
        from src.config import settings

        return cls(
            db,
            fees=FeeSchedule.from_settings(),
            window_days=settings.payouts.PAYOUT_WINDOW_DAYS,
            window_mode=settings.payouts.PAYOUT_WINDOW_MODE,
            tz=settings.payouts.TIMEZONE,
        )

    async def get_driver_earnings(
        self,
        driver_id: int,
        since: datetime | None = None,
    ) -> DriverEarningsReport:
        """
        Отчёт о заработке водителя по завершённым поездкам.

        Args:
            driver_id: ID водителя
            since: Учитывать поездки начиная с этого момента (None = все)

        Returns:
            DriverEarningsReport с разбивкой по поездкам и датам
        """
        rides = await self._repo.get_completed_rides(driver_id, since=since)

        total_net = 0.0
        total_seats = 0
        total_distance = 0.0
        by_date: dict[str, float] = {}
        details: list[RideEarnings] = []

        for ride in rides:
            raw = calculate_ride_earnings(ride.price_per_seat, ride.bookings, self._fees, rounded=False)
            breakdown = calculate_ride_earnings(ride.price_per_seat, ride.bookings, self._fees)
            seats = ride.seats_booked
            distance = ride.distance or 0.0

            total_net += raw.net_earnings
            total_seats += seats
            total_distance += distance

            if ride.updated_at is not None:
                day = ride.updated_at.date().isoformat()
                by_date[day] = by_date.get(day, 0.0) + raw.net_earnings

            details.append(
                RideEarnings(
                    ride_id=ride.id,
                    date=ride.updated_at,
                    from_city=ride.from_city,
                    to_city=ride.to_city,
                    seats_booked=seats,
                    price_per_seat=round(ride.price_per_seat, 2),
                    distance=distance,
                    earnings=breakdown.net_earnings,
                    breakdown=breakdown,
                )
            )

        total_rides = len(rides)
        return DriverEarningsReport(
            driver_id=driver_id,
            total=round(total_net, 2),
            total_rides=total_rides,
            total_seats_booked=total_seats,
            total_distance=round(total_distance, 2),
            average_per_ride=round(total_net / total_rides, 2) if total_rides else 0.0,
            by_date={day: round(amount, 2) for day, amount in by_date.items()},
            recent_rides=details[:RECENT_RIDES_LIMIT],
        )

    async def get_earnings_summary(self, driver_id: int, now: datetime | None = None) -> EarningsSummary:
        """Сводка: поездки всего и за текущее окно выплат с net-заработком окна."""
        window = payout_window(
            now or datetime.now(timezone.utc),
            days=self._window_days,
            mode=self._window_mode,
            tz=self._tz,
        )
        total_rides = await self._repo.count_completed_rides(driver_id)
        window_rides = await self._repo.get_completed_rides(driver_id, since=window.start, until=window.end)
        window_net = sum(
            calculate_ride_earnings(r.price_per_seat, r.bookings, self._fees, rounded=False).net_earnings
            for r in window_rides
        )
        return EarningsSummary(
            driver_id=driver_id,
            total_rides=total_rides,
            window_rides=len(window_rides),
            window_net_earnings=round(window_net, 2),
            window_start=window.start,
            window_end=window.end,
        )
