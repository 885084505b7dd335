# src/infra/__init__.py
"""
Подключения к внешним системам: PostgreSQL (asyncpg), Redis, RabbitMQ (aio-pika), Stripe.

Жизненный цикл всех подключений сразу: src.infra.lifecycle.infrastructure().
"""

from src.infra.database import DatabaseManager, get_db
from src.infra.event_bus import EventBus, get_event_bus
from src.infra.redis_client import RedisClient, get_redis
from src.infra.stripe_client import StripeGateway, get_stripe, get_stripe_or_none

__all__ = [
    "DatabaseManager",
    "EventBus",
    "RedisClient",
    "StripeGateway",
    "get_db",
    "get_event_bus",
    "get_redis",
    "get_stripe",
    "get_stripe_or_none",
]
