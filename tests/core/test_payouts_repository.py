# tests/core/test_payouts_repository.py
"""
Тесты для репозитория выплат.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.common.constants import PayoutStatus
from src.core.payouts.repository import PayoutRepository
from src.shared.models.payout import PayoutCreate


UPDATED_AT = datetime(2026, 10, 9, 18, 0, tzinfo=timezone.utc)


def _ride_row(ride_id: int, price: str = "25.00") -> dict:
    return {
        "id": ride_id,
        "driver_id": 42,
        "status": "completed",
        "price_per_seat": Decimal(price),
        "distance": 120.5,
        "from_city": "Berlin",
        "to_city": "Leipzig",
        "updated_at": UPDATED_AT,
    }


def _payout_row(**overrides) -> dict:
    row = {
        "id": 1,
        "driver_id": 42,
        "stripe_payout_id": "po_1",
        "transfer_id": "tr_1",
        "amount": Decimal("94.80"),
        "currency": "usd",
        "status": "pending",
        "payout_method": "bank_account",
        "description": None,
        "failure_code": None,
        "failure_message": None,
        "arrival_date": None,
        "settlement_window": "2026-10-12",
        "created_at": UPDATED_AT,
        "updated_at": UPDATED_AT,
    }
    row.update(overrides)
    return row


@pytest.fixture
def repository(mock_db: AsyncMock) -> PayoutRepository:
    return PayoutRepository(mock_db)


class TestDrivers:
    """Тесты выборки водителей."""

    @pytest.mark.asyncio
    async def test_eligible_drivers(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        mock_db.fetch.return_value = [
            {"id": 42, "full_name": "Test Driver", "email": None, "is_driver": True, "stripe_account_id": "acct_1"}
        ]

        drivers = await repository.get_eligible_drivers()

        assert [d.stripe_account_id for d in drivers] == ["acct_1"]
        assert "stripe_account_id IS NOT NULL" in mock_db.fetch.await_args.args[0]

    @pytest.mark.asyncio
    async def test_driver_not_found(self, repository: PayoutRepository) -> None:
        assert await repository.get_driver(404) is None

    @pytest.mark.asyncio
    async def test_driver_reads_payouts_flag(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        mock_db.fetchrow.return_value = {
            "id": 42, "full_name": None, "email": None, "is_driver": True,
            "stripe_account_id": "acct_1", "payouts_enabled": True,
        }

        driver = await repository.get_driver(42)

        assert driver.payouts_enabled is True

    @pytest.mark.asyncio
    async def test_set_payouts_enabled(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        await repository.set_payouts_enabled(42, True)

        query, driver_id, enabled = mock_db.execute.await_args.args
        assert "UPDATE users" in query
        assert (driver_id, enabled) == (42, True)


class TestCompletedRides:
    """Тесты выборки завершённых поездок."""

    @pytest.mark.asyncio
    async def test_groups_bookings_by_ride(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        """Бронирования раскладываются по своим поездкам."""
        mock_db.fetch.side_effect = [
            [_ride_row(1), _ride_row(2, "30.00")],
            [
                {"ride_id": 1, "number_of_seats": 2, "price_per_seat": Decimal("20.00"), "status": "confirmed"},
                {"ride_id": 1, "number_of_seats": 1, "price_per_seat": None, "status": "completed"},
                {"ride_id": 2, "number_of_seats": None, "price_per_seat": Decimal("30.00"), "status": "confirmed"},
            ],
        ]

        rides = await repository.get_completed_rides(42)

        assert len(rides) == 2
        assert rides[0].price_per_seat == 25.0
        assert len(rides[0].bookings) == 2
        assert rides[0].bookings[0].price_per_seat == 20.0
        assert rides[0].bookings[1].price_per_seat is None
        assert rides[1].seats_booked == 1

    @pytest.mark.asyncio
    async def test_ride_without_bookings(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        mock_db.fetch.side_effect = [[_ride_row(1)], []]

        rides = await repository.get_completed_rides(42)

        assert rides[0].bookings == []

    @pytest.mark.asyncio
    async def test_no_rides_skips_bookings_query(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        assert await repository.get_completed_rides(42) == []
        assert mock_db.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_window_bounds_passed(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        since = datetime(2026, 10, 5, tzinfo=timezone.utc)
        until = datetime(2026, 10, 12, tzinfo=timezone.utc)

        await repository.get_completed_rides(42, since=since, until=until)

        args = mock_db.fetch.await_args.args
        assert args[1:] == (42, "completed", since, until)


class TestPayouts:
    """Тесты записи и обновления выплат."""

    @pytest.mark.asyncio
    async def test_sum_pending_converts_decimal(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        mock_db.fetchval.return_value = Decimal("12.50")

        total = await repository.sum_pending_payouts(42, UPDATED_AT)

        assert total == 12.5
        assert set(mock_db.fetchval.await_args.args[2]) == {"pending", "processing"}

    @pytest.mark.asyncio
    async def test_claim_settlement_free(self, repository: PayoutRepository, mock_conn: AsyncMock) -> None:
        """Блокировка получена и выплаты за окно нет."""
        mock_conn.fetchval.side_effect = [True, None]

        assert await repository.claim_settlement(mock_conn, 42, "2026-10-12") is True

    @pytest.mark.asyncio
    async def test_claim_settlement_locked(self, repository: PayoutRepository, mock_conn: AsyncMock) -> None:
        """Окно обрабатывается другим запуском."""
        mock_conn.fetchval.side_effect = [False]

        assert await repository.claim_settlement(mock_conn, 42, "2026-10-12") is False
        assert mock_conn.fetchval.await_count == 1

    @pytest.mark.asyncio
    async def test_claim_settlement_already_paid(self, repository: PayoutRepository, mock_conn: AsyncMock) -> None:
        mock_conn.fetchval.side_effect = [True, 17]

        assert await repository.claim_settlement(mock_conn, 42, "2026-10-12") is False

    @pytest.mark.asyncio
    async def test_create_payout(self, repository: PayoutRepository, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = _payout_row()
        data = PayoutCreate(
            driver_id=42,
            stripe_payout_id="po_1",
            transfer_id="tr_1",
            amount=94.80,
            settlement_window="2026-10-12",
        )

        payout = await repository.create_payout(mock_conn, data)

        assert payout.amount == 94.8
        assert payout.status == PayoutStatus.PENDING
        assert Decimal("94.8") in mock_conn.fetchrow.await_args.args

    @pytest.mark.asyncio
    async def test_create_failed_payout_without_processor_id(
        self, repository: PayoutRepository, mock_conn: AsyncMock
    ) -> None:
        """Запись о переводе без payout: ID payout пуст, причина сохраняется."""
        mock_conn.fetchrow.return_value = _payout_row(
            stripe_payout_id=None, status="failed", failure_message="bank account closed"
        )
        data = PayoutCreate(
            driver_id=42,
            transfer_id="tr_1",
            amount=94.80,
            status=PayoutStatus.FAILED,
            failure_message="bank account closed",
            settlement_window="2026-10-12",
        )

        payout = await repository.create_payout(mock_conn, data)

        args = mock_conn.fetchrow.await_args.args
        assert "failure_message" in args[0]
        assert args[1:4] == (42, None, "tr_1")
        assert "bank account closed" in args
        assert payout.status is PayoutStatus.FAILED
        assert payout.stripe_payout_id is None

    @pytest.mark.asyncio
    async def test_update_status_parses_count(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        mock_db.execute.return_value = "UPDATE 2"

        updated = await repository.update_payout_status("tr_1", PayoutStatus.COMPLETED)

        assert updated == 2
        assert mock_db.execute.await_args.args[1:3] == ("tr_1", "completed")

    @pytest.mark.asyncio
    async def test_update_status_unexpected_result(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        mock_db.execute.return_value = None

        assert await repository.update_payout_status("po_x", PayoutStatus.FAILED) == 0

    @pytest.mark.asyncio
    async def test_list_payouts(self, repository: PayoutRepository, mock_db: AsyncMock) -> None:
        mock_db.fetch.return_value = [_payout_row(), _payout_row(id=2, status="completed")]

        payouts = await repository.list_payouts(42, limit=10, offset=20)

        assert [p.id for p in payouts] == [1, 2]
        assert payouts[1].status == PayoutStatus.COMPLETED
        assert mock_db.fetch.await_args.args[1:] == (42, 10, 20)
