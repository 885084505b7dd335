# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Переменные окружения должны быть заданы до импорта src.config
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_dummy")


class AsyncContext:
    """Асинхронный контекстный менеджер, отдающий заданный объект."""

    def __init__(self, value: Any) -> None:
        self.value = value

    async def __aenter__(self) -> Any:
        return self.value

    async def __aexit__(self, *exc: Any) -> bool:
        return False


# =============================================================================
# КОНФИГУРАЦИЯ
# =============================================================================

@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Плоский config.json тестового окружения."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "rideshare_payouts_test",
        "ENVIRONMENT": "test",
        "COMPONENT_MODE": "payments_service",
        "PAYMENTS_SERVICE_PORT": 8087,
        "LOG_TO_FILE": False,
        "DB_NAME": "rideshare_test",
        "DB_RETRY_ATTEMPTS": 2,
        "DB_RETRY_DELAY": 0.5,
        "REDIS_NAMESPACE": "rideshare_test",
        "RABBITMQ_EXCHANGE": "rideshare.test",
        "CURRENCY": "usd",
        "COMMISSION_PER_RIDE": 2.00,
        "PAYOUT_WINDOW_MODE": "calendar",
        "PAYOUT_MAX_CONCURRENCY": 3,
        "PAYOUT_MIN_AMOUNT": 1.0,
        "PAYOUT_METHOD": "instant",
        "TIMEZONE": "Europe/Berlin",
    }


# =============================================================================
# МОКИ ИНФРАСТРУКТУРЫ
# =============================================================================

@pytest.fixture
def mock_conn() -> AsyncMock:
    """Соединение asyncpg внутри транзакции."""
    conn = AsyncMock()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value="INSERT 0 1")
    return conn


@pytest.fixture
def mock_db(mock_conn: AsyncMock) -> AsyncMock:
    """DatabaseManager; transaction() и acquire() отдают mock_conn."""
    db = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    db.execute = AsyncMock(return_value="UPDATE 0")
    db.transaction = MagicMock(return_value=AsyncContext(mock_conn))
    db.acquire = MagicMock(return_value=AsyncContext(mock_conn))
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """RedisClient, у которого блокировка запуска всегда свободна."""
    redis = AsyncMock()
    redis.acquire_lock = AsyncMock(return_value=True)
    redis.release_lock = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    bus = AsyncMock()
    bus.publish = AsyncMock(return_value=True)
    bus.subscribe = AsyncMock(return_value=None)
    return bus


@pytest.fixture
def mock_stripe() -> AsyncMock:
    """Мок шлюза Stripe с успешными ответами по умолчанию."""
    stripe = AsyncMock()
    stripe.retrieve_account = AsyncMock(return_value=SimpleNamespace(id="acct_1", payouts_enabled=True))
    stripe.create_transfer = AsyncMock(return_value=SimpleNamespace(id="tr_1"))
    stripe.create_payout = AsyncMock(
        return_value=SimpleNamespace(id="po_1", status="pending", arrival_date=None)
    )
    stripe.list_bank_accounts = AsyncMock(return_value=[])
    stripe.construct_webhook_event = MagicMock()
    return stripe


# =============================================================================
# ДАННЫЕ
# =============================================================================

@pytest.fixture
def sample_driver_data() -> dict[str, Any]:
    """Пример данных водителя с подключённым аккаунтом."""
    return {
        "id": 42,
        "full_name": "Test Driver",
        "email": "driver@example.com",
        "is_driver": True,
        "stripe_account_id": "acct_1",
    }


@pytest.fixture
def sample_booking_data() -> dict[str, Any]:
    """Пример бронирования с авторизованным платежом."""
    return {
        "id": 7,
        "ride_id": 3,
        "rider_id": 11,
        "number_of_seats": 2,
        "price_per_seat": 25.0,
        "status": "confirmed",
        "payment_intent_id": "pi_123",
        "payment_status": "pending",
        "payment_amount": 50.0,
        "payment_currency": "usd",
        "refund_amount": None,
        "refunded_at": None,
        "ride_price_per_seat": 30.0,
        "rider_email": "rider@example.com",
        "rider_name": "Test Rider",
        "rider_customer_id": "cus_1",
    }


@pytest.fixture
def fixed_now() -> datetime:
    """Понедельник 09:30 UTC."""
    return datetime(2026, 10, 12, 9, 30, tzinfo=timezone.utc)


