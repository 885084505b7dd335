# src/shared/models/__init__.py
"""
Общие DTO и Pydantic-модели.
"""

from src.shared.models.ride import Booking, BookingSeats, DriverAccount, Ride
from src.shared.models.earnings import (
    DriverEarningsReport,
    EarningsBreakdown,
    EarningsSummary,
    RideEarnings,
)
from src.shared.models.payout import (
    DriverPayoutResult,
    Payout,
    PayoutCreate,
    PayoutRunReport,
)
from src.shared.models.payment import (
    CancelResult,
    CaptureRequest,
    CaptureResult,
    PaymentStatusInfo,
    RefundRequest,
    RefundResult,
    RetryRequest,
    RetryResult,
)
from src.shared.models.common import (
    PaginationParams,
    PaginatedResponse,
    ErrorResponse,
    HealthStatus,
)

__all__ = [
    # Rides
    "Booking",
    "BookingSeats",
    "DriverAccount",
    "Ride",
    # Earnings
    "DriverEarningsReport",
    "EarningsBreakdown",
    "EarningsSummary",
    "RideEarnings",
    # Payouts
    "DriverPayoutResult",
    "Payout",
    "PayoutCreate",
    "PayoutRunReport",
    # Payments
    "CancelResult",
    "CaptureRequest",
    "CaptureResult",
    "PaymentStatusInfo",
    "RefundRequest",
    "RefundResult",
    "RetryRequest",
    "RetryResult",
    # Common
    "PaginationParams",
    "PaginatedResponse",
    "ErrorResponse",
    "HealthStatus",
]
