# src/core/payouts/__init__.py
"""
Домен еженедельных выплат водителям.
"""

from src.core.payouts.schedule import PayoutWindow, is_due, payout_window, window_key
from src.core.payouts.repository import PayoutRepository
from src.core.payouts.service import WeeklyPayoutService, map_payout_status

__all__ = [
    "PayoutWindow",
    "is_due",
    "payout_window",
    "window_key",
    "PayoutRepository",
    "WeeklyPayoutService",
    "map_payout_status",
]
