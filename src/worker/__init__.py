# src/worker/__init__.py
"""
Фоновые воркеры: расписание еженедельных выплат.
"""

from src.worker.base import BaseWorker
from src.worker.payout_scheduler import PayoutSchedulerWorker

__all__ = ["BaseWorker", "PayoutSchedulerWorker"]
