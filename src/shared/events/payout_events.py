# src/shared/events/payout_events.py
"""
События домена выплат водителям.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from src.shared.events.base import DomainEvent


class PayoutCreated(DomainEvent):
    """Событие: выплата водителю создана в Stripe и сохранена."""

    event_type: Literal["payout.created"] = "payout.created"

    driver_id: int
    payout_record_id: int | None = None
    stripe_payout_id: str
    transfer_id: str
    amount: float
    currency: str = "usd"
    status: str
    window_start: datetime
    window_end: datetime


class PayoutFailed(DomainEvent):
    """Событие: выплата водителю не удалась."""

    event_type: Literal["payout.failed"] = "payout.failed"

    driver_id: int
    error_message: str
    transfer_id: str | None = None
    payout_record_id: int | None = None
    window_start: datetime
    window_end: datetime


class PayoutStatusChanged(DomainEvent):
    """Событие: статус выплаты обновлён вебхуком Stripe."""

    event_type: Literal["payout.status_changed"] = "payout.status_changed"

    external_id: str
    status: str
    failure_code: str | None = None
    failure_message: str | None = None
    updated_count: int = 0
