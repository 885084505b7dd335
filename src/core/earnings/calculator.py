# src/core/earnings/calculator.py
"""
Расчёт заработка водителя за поездку.

Чистые функции без I/O. Из gross-суммы по бронированиям вычитаются
комиссия процессора (процент + фиксированная часть) и комиссия
платформы за поездку. Комиссии считаются всегда, net не бывает
отрицательным.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from src.shared.models.earnings import EarningsBreakdown


@dataclass(frozen=True)
class FeeSchedule:
    """Тарифы комиссий платформы."""
    processing_fee_percentage: float = 0.029
    processing_fee_fixed: float = 0.30
    commission_per_ride: float = 2.00

    @classmethod
    def from_settings(cls) -> FeeSchedule:
        """Создаёт тарифы из секции earnings конфигурации."""
        from src.config import settings

        return cls(
            processing_fee_percentage=settings.earnings.PROCESSING_FEE_PERCENTAGE,
            processing_fee_fixed=settings.earnings.PROCESSING_FEE_FIXED,
            commission_per_ride=settings.earnings.COMMISSION_PER_RIDE,
        )


DEFAULT_FEES = FeeSchedule()


def calculate_processing_fee(amount: float, fees: FeeSchedule = DEFAULT_FEES) -> float:
    """Комиссия процессора: amount * процент + фиксированная часть."""
    return amount * fees.processing_fee_percentage + fees.processing_fee_fixed


def calculate_driver_earnings(
    gross_earnings: float,
    fees: FeeSchedule = DEFAULT_FEES,
    *,
    rounded: bool = True,
) -> EarningsBreakdown:
    """
    Считает net-заработок водителя из gross-суммы поездки.

    Args:
        gross_earnings: Сумма seats * price по всем бронированиям поездки
        fees: Тарифы комиссий
        rounded: Округлять ли поля до центов. Для суммирования по
            нескольким поездкам передавайте False и округляйте итог.

    Returns:
        EarningsBreakdown
    """
    gross = max(0.0, gross_earnings or 0.0)

    processing_fee = calculate_processing_fee(gross, fees)
    commission = fees.commission_per_ride
    total_fees = processing_fee + commission
    net = max(0.0, gross - total_fees)

    if not rounded:
        return EarningsBreakdown(
            gross_earnings=gross,
            processing_fee=processing_fee,
            commission=commission,
            total_fees=total_fees,
            net_earnings=net,
        )

    return EarningsBreakdown(
        gross_earnings=round(gross, 2),
        processing_fee=round(processing_fee, 2),
        commission=round(commission, 2),
        total_fees=round(total_fees, 2),
        net_earnings=round(net, 2),
    )


def _field(booking: Any, name: str) -> Any:
    if isinstance(booking, dict):
        return booking.get(name)
    return getattr(booking, name, None)


def calculate_ride_gross(price_per_seat: float | None, bookings: Iterable[Any]) -> float:
    """
    Gross-сумма поездки: sum(seats * price) по бронированиям.

    Пустое число мест считается как 1. Цена, зафиксированная при
    бронировании, имеет приоритет над текущей ценой поездки.
    """
    fallback_price = price_per_seat or 0.0
    gross = 0.0
    for booking in bookings:
        seats = _field(booking, "number_of_seats") or 1
        locked_price = _field(booking, "price_per_seat")
        price = locked_price if locked_price is not None else fallback_price
        if seats <= 0 or price <= 0:
            continue
        gross += seats * price
    return gross


def calculate_ride_earnings(
    price_per_seat: float | None,
    bookings: Iterable[Any],
    fees: FeeSchedule = DEFAULT_FEES,
    *,
    rounded: bool = True,
) -> EarningsBreakdown:
    """
    Заработок за одну поездку.

    Args:
        price_per_seat: Текущая цена места поездки (fallback)
        bookings: Бронирования (dict или объекты с number_of_seats/price_per_seat)
        fees: Тарифы комиссий
        rounded: Округлять ли результат до центов
    """
    gross = calculate_ride_gross(price_per_seat, bookings)
    return calculate_driver_earnings(gross, fees, rounded=rounded)
