# tests/common/test_constants.py
"""
Тесты для модуля констант.
"""

import pytest

from src.common.constants import (
    OPEN_PAYOUT_STATUSES,
    QUALIFYING_BOOKING_STATUSES,
    WEEKLY_PAYOUT_TYPE,
    BookingStatus,
    PaymentStatus,
    PayoutMethod,
    PayoutStatus,
    RefundReason,
    RideStatus,
    TypeMsg,
)


class TestTypeMsg:
    """Тесты для enum TypeMsg."""

    def test_type_msg_values(self) -> None:
        """Проверяет значения типов сообщений."""
        assert TypeMsg.DEBUG.value == "debug"
        assert TypeMsg.INFO.value == "info"
        assert TypeMsg.WARNING.value == "warning"
        assert TypeMsg.ERROR.value == "error"
        assert TypeMsg.CRITICAL.value == "critical"

    def test_type_msg_is_str_enum(self) -> None:
        assert isinstance(TypeMsg.DEBUG, str)
        assert TypeMsg.INFO == "info"


class TestStatuses:
    """Тесты статусов поездок, бронирований, платежей и выплат."""

    def test_ride_completed(self) -> None:
        assert RideStatus.COMPLETED == "completed"
        assert RideStatus.IN_PROGRESS.value == "in-progress"

    def test_payment_statuses(self) -> None:
        """Локальные статусы оплаты бронирования."""
        assert {s.value for s in PaymentStatus} == {
            "pending",
            "authorized",
            "captured",
            "failed",
            "refunded",
            "partially_refunded",
        }

    def test_payout_statuses(self) -> None:
        assert len(list(PayoutStatus)) == 5
        assert PayoutStatus.CANCELED.value == "canceled"

    @pytest.mark.parametrize("method", ["bank_account", "instant"])
    def test_payout_methods(self, method: str) -> None:
        assert PayoutMethod(method).value == method

    def test_refund_reason_default_first(self) -> None:
        assert list(RefundReason)[0] == RefundReason.REQUESTED_BY_CUSTOMER


class TestGroups:
    """Тесты наборов статусов."""

    def test_qualifying_bookings_exclude_cancelled(self) -> None:
        assert BookingStatus.CANCELLED.value not in QUALIFYING_BOOKING_STATUSES
        assert set(QUALIFYING_BOOKING_STATUSES) == {"confirmed", "completed"}

    def test_open_payouts(self) -> None:
        """Незавершённые выплаты уменьшают доступный баланс."""
        assert set(OPEN_PAYOUT_STATUSES) == {"pending", "processing"}

    def test_weekly_payout_type(self) -> None:
        assert WEEKLY_PAYOUT_TYPE == "weekly_payout"
