# src/core/payments/__init__.py
"""
Домен платежей за бронирования.
"""

from src.core.payments.repository import BookingRepository
from src.core.payments.service import PaymentLifecycleService, map_intent_status

__all__ = [
    "BookingRepository",
    "PaymentLifecycleService",
    "map_intent_status",
]
