# src/shared/models/payment.py
"""
DTO операций над платежами за бронирования.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.common.constants import PaymentStatus, RefundReason


# =============================================================================
# ЗАПРОСЫ
# =============================================================================

class CaptureRequest(BaseModel):
    """Запрос на списание (None = вся авторизованная сумма)."""

    amount: float | None = Field(default=None, gt=0)


class RefundRequest(BaseModel):
    """Запрос на возврат (None = полный возврат)."""

    amount: float | None = Field(default=None, gt=0)
    reason: RefundReason = RefundReason.REQUESTED_BY_CUSTOMER


class RetryRequest(BaseModel):
    """Повтор оплаты бронирования новым способом оплаты."""

    payment_method_id: str = Field(min_length=1)


# =============================================================================
# РЕЗУЛЬТАТЫ
# =============================================================================

class CaptureResult(BaseModel):
    success: bool = True
    payment_intent_id: str
    status: str
    amount: float = 0.0
    currency: str = "usd"
    message: str | None = None


class RefundResult(BaseModel):
    success: bool = True
    refund_id: str
    amount: float
    status: str | None = None
    payment_status: PaymentStatus


class CancelResult(BaseModel):
    success: bool = True
    payment_intent_id: str
    status: str
    message: str | None = None


class RetryResult(BaseModel):
    success: bool = True
    booking_id: int
    payment_intent_id: str
    client_secret: str | None = None
    status: str
    payment_status: PaymentStatus
    amount: float


class PaymentStatusInfo(BaseModel):
    """Локальное состояние оплаты бронирования."""

    booking_id: int
    payment_intent_id: str | None = None
    payment_status: PaymentStatus | None = None
    payment_amount: float | None = None
    payment_currency: str | None = None
    refund_amount: float | None = None
    refunded_at: datetime | None = None
