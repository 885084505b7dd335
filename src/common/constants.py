# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class RideStatus(str, Enum):
    """Статусы поездки."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingStatus(str, Enum):
    """Статусы бронирования."""
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Статусы оплаты бронирования (локальное зеркало статуса PaymentIntent)."""
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PayoutStatus(str, Enum):
    """Статусы выплаты водителю."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


class PayoutMethod(str, Enum):
    """Способы выплаты."""
    BANK_ACCOUNT = "bank_account"
    INSTANT = "instant"


class RefundReason(str, Enum):
    """Причины возврата, принимаемые Stripe."""
    REQUESTED_BY_CUSTOMER = "requested_by_customer"
    DUPLICATE = "duplicate"
    FRAUDULENT = "fraudulent"


# Бронирования, которые учитываются в заработке водителя
QUALIFYING_BOOKING_STATUSES: tuple[str, ...] = (
    BookingStatus.CONFIRMED.value,
    BookingStatus.COMPLETED.value,
)

# Выплаты, которые ещё не дошли до банка водителя
OPEN_PAYOUT_STATUSES: tuple[str, ...] = (
    PayoutStatus.PENDING.value,
    PayoutStatus.PROCESSING.value,
)

# Тип выплаты в metadata Stripe
WEEKLY_PAYOUT_TYPE = "weekly_payout"
