# src/shared/events/payment_events.py
"""
События жизненного цикла платежа за бронирование.
"""

from __future__ import annotations

from typing import Literal

from src.shared.events.base import DomainEvent


class PaymentCaptured(DomainEvent):
    """Событие: авторизованный платёж списан."""

    event_type: Literal["payment.captured"] = "payment.captured"

    payment_intent_id: str
    booking_id: int | None = None
    amount: float
    currency: str = "usd"


class PaymentRefunded(DomainEvent):
    """Событие: по платежу выполнен полный или частичный возврат."""

    event_type: Literal["payment.refunded"] = "payment.refunded"

    payment_intent_id: str
    booking_id: int | None = None
    refund_id: str
    amount: float
    payment_status: str  # refunded | partially_refunded


class PaymentCanceled(DomainEvent):
    """Событие: авторизация платежа отменена."""

    event_type: Literal["payment.canceled"] = "payment.canceled"

    payment_intent_id: str
    booking_id: int | None = None


class PaymentRetried(DomainEvent):
    """Событие: создан новый PaymentIntent для бронирования."""

    event_type: Literal["payment.retried"] = "payment.retried"

    booking_id: int
    payment_intent_id: str
    original_payment_intent_id: str
    payment_status: str
    amount: float
