# tests/core/test_earnings_calculator.py
"""
Тесты для калькулятора заработка водителя.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from src.core.earnings.calculator import (
    DEFAULT_FEES,
    FeeSchedule,
    calculate_driver_earnings,
    calculate_processing_fee,
    calculate_ride_earnings,
    calculate_ride_gross,
)


class TestFeeMath:
    """Тесты расчёта комиссий."""

    def test_default_fee_schedule(self) -> None:
        """Проверяет тарифы по умолчанию."""
        assert DEFAULT_FEES.processing_fee_percentage == 0.029
        assert DEFAULT_FEES.processing_fee_fixed == 0.30
        assert DEFAULT_FEES.commission_per_ride == 2.00

    def test_breakdown_for_100(self) -> None:
        """gross=100 даёт fee 3.20, комиссию 2.00 и net 94.80."""
        result = calculate_driver_earnings(100)

        assert result.gross_earnings == 100
        assert result.processing_fee == 3.20
        assert result.commission == 2.00
        assert result.total_fees == 5.20
        assert result.net_earnings == 94.80

    def test_processing_fee(self) -> None:
        """Процент плюс фиксированная часть."""
        assert calculate_processing_fee(10) == pytest.approx(0.59)

    def test_custom_schedule(self) -> None:
        """Проверяет пользовательские тарифы."""
        fees = FeeSchedule(processing_fee_percentage=0.0, processing_fee_fixed=0.0, commission_per_ride=1.0)
        assert calculate_driver_earnings(10, fees).net_earnings == 9.0


class TestFloorAtZero:
    """Тесты нижней границы net-заработка."""

    def test_small_gross_stays_positive(self) -> None:
        """gross=3: комиссии 2.387, net 0.613."""
        raw = calculate_driver_earnings(3, rounded=False)

        assert raw.total_fees == pytest.approx(2.387)
        assert raw.net_earnings == pytest.approx(0.613)
        assert calculate_driver_earnings(3).net_earnings == 0.61

    def test_zero_gross_gives_zero_net(self) -> None:
        """gross=0: комиссии считаются, net ровно 0."""
        result = calculate_driver_earnings(0)

        assert result.net_earnings == 0
        assert result.total_fees == 2.30

    def test_fees_above_gross(self) -> None:
        """Комиссии больше gross не дают отрицательного net."""
        assert calculate_driver_earnings(1.5).net_earnings == 0


class TestRideGross:
    """Тесты gross-суммы поездки."""

    def test_locked_price_wins(self) -> None:
        """Цена бронирования 20 используется вместо цены поездки 25."""
        bookings = [{"number_of_seats": 1, "price_per_seat": 20}]
        assert calculate_ride_gross(25, bookings) == 20

    def test_falls_back_to_ride_price(self) -> None:
        """Без зафиксированной цены берётся цена поездки."""
        bookings = [{"number_of_seats": 2, "price_per_seat": None}]
        assert calculate_ride_gross(25, bookings) == 50

    def test_missing_seats_count_as_one(self) -> None:
        """Пустое число мест считается как одно место."""
        bookings = [SimpleNamespace(number_of_seats=None, price_per_seat=15.0)]
        assert calculate_ride_gross(None, bookings) == 15

    def test_mixed_bookings(self) -> None:
        """Суммирует бронирования с разными ценами."""
        bookings = [
            {"number_of_seats": 2, "price_per_seat": 20},
            {"number_of_seats": 1, "price_per_seat": None},
        ]
        assert calculate_ride_gross(25, bookings) == 65

    def test_no_bookings(self) -> None:
        assert calculate_ride_gross(25, []) == 0

    def test_ride_earnings_uses_gross(self) -> None:
        """Заработок поездки считается от gross по бронированиям."""
        result = calculate_ride_earnings(25, [{"number_of_seats": 4, "price_per_seat": 25}])

        assert result.gross_earnings == 100
        assert result.net_earnings == 94.80
