# src/core/earnings/__init__.py
"""
Домен заработка водителей.
"""

from src.core.earnings.calculator import (
    DEFAULT_FEES,
    FeeSchedule,
    calculate_driver_earnings,
    calculate_processing_fee,
    calculate_ride_earnings,
)
from src.core.earnings.service import EarningsService

__all__ = [
    "DEFAULT_FEES",
    "FeeSchedule",
    "calculate_driver_earnings",
    "calculate_processing_fee",
    "calculate_ride_earnings",
    "EarningsService",
]
