#!/usr/bin/env python3
# entrypoints/entrypoint_payments_service.py
"""
Контейнер HTTP API сервиса платежей (порт PAYMENTS_SERVICE_PORT, по умолчанию 8087).
"""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import uvicorn  # noqa: E402

from src.config import settings  # noqa: E402


if __name__ == "__main__":
    uvicorn.run(
        "src.services.payments.app:app",
        host=settings.deployment.PAYMENTS_SERVICE_HOST,
        port=settings.deployment.PAYMENTS_SERVICE_PORT,
        log_level=settings.logging.LOG_LEVEL.lower(),
        proxy_headers=True,
    )
