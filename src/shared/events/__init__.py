# src/shared/events/__init__.py
"""
Схемы событий для RabbitMQ.

События разделены по доменам:
- payout_events: создание, ошибка и смена статуса выплаты водителю
- payment_events: списание, возврат, отмена и повтор платежа

Все события содержат event_id для дедупликации.
"""

from src.shared.events.base import DomainEvent, EventMetadata
from src.shared.events.payout_events import (
    PayoutCreated,
    PayoutFailed,
    PayoutStatusChanged,
)
from src.shared.events.payment_events import (
    PaymentCaptured,
    PaymentRefunded,
    PaymentCanceled,
    PaymentRetried,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventMetadata",
    # Payout events
    "PayoutCreated",
    "PayoutFailed",
    "PayoutStatusChanged",
    # Payment events
    "PaymentCaptured",
    "PaymentRefunded",
    "PaymentCanceled",
    "PaymentRetried",
]
