# tests/core/test_payments_repository.py
"""
Тесты для репозитория бронирований.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.common.constants import PaymentStatus
from src.core.payments.repository import BookingRepository


@pytest.fixture
def repository(mock_db: AsyncMock) -> BookingRepository:
    return BookingRepository(mock_db)


class TestBookingRepository:
    """Тесты BookingRepository."""

    @pytest.mark.asyncio
    async def test_get_by_id_converts_money(
        self,
        repository: BookingRepository,
        mock_db: AsyncMock,
        sample_booking_data: dict[str, Any],
    ) -> None:
        row = dict(sample_booking_data)
        row["payment_amount"] = Decimal("50.00")
        row["ride_price_per_seat"] = Decimal("30.00")
        mock_db.fetchrow.return_value = row

        booking = await repository.get_by_id(7)

        assert booking.payment_amount == 50.0
        assert isinstance(booking.ride_price_per_seat, float)
        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.effective_price_per_seat == 25.0

    @pytest.mark.asyncio
    async def test_get_by_id_missing(self, repository: BookingRepository) -> None:
        assert await repository.get_by_id(404) is None

    @pytest.mark.asyncio
    async def test_get_by_payment_intent(self, repository: BookingRepository, mock_db: AsyncMock) -> None:
        await repository.get_by_payment_intent("pi_123")

        query, intent_id = mock_db.fetchrow.await_args.args
        assert "b.payment_intent_id = $1" in query
        assert intent_id == "pi_123"

    @pytest.mark.asyncio
    async def test_mark_captured(self, repository: BookingRepository, mock_db: AsyncMock) -> None:
        await repository.mark_captured(7, 50.0, "usd")

        args = mock_db.execute.await_args.args
        assert args[1:5] == (7, "captured", Decimal("50.0"), "usd")

    @pytest.mark.asyncio
    async def test_mark_payment_failed(self, repository: BookingRepository, mock_db: AsyncMock) -> None:
        await repository.mark_payment_failed(7)

        assert mock_db.execute.await_args.args[1:3] == (7, "failed")

    @pytest.mark.asyncio
    async def test_replace_payment(self, repository: BookingRepository, mock_db: AsyncMock) -> None:
        """Новый PaymentIntent перезаписывает платёжные поля."""
        await repository.replace_payment(7, "pi_new", PaymentStatus.PENDING, 60.0, "usd")

        args = mock_db.execute.await_args.args
        assert args[1:6] == (7, "pi_new", "pending", Decimal("60.0"), "usd")
