# src/infra/lifecycle.py
"""
Подъём и остановка инфраструктуры процесса: PostgreSQL, Redis, RabbitMQ, Stripe.

Используется API (lifespan), планировщиком, main.py и скриптом weekly_payouts.py.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.infra.database import close_db, init_db
from src.infra.event_bus import close_event_bus, init_event_bus
from src.infra.redis_client import close_redis, init_redis
from src.infra.stripe_client import init_stripe, reset_stripe


async def start_infrastructure() -> None:
    """Подключает все зависимости; Stripe без ключа остаётся ненастроенным."""
    await log_info("Инициализация инфраструктуры...", type_msg=TypeMsg.INFO)
    await init_db()
    await init_redis()
    await init_event_bus()
    await init_stripe()
    await log_info("Инфраструктура готова", type_msg=TypeMsg.INFO)


async def stop_infrastructure() -> None:
    """Закрывает подключения в обратном порядке; сбой одного не мешает остальным."""
    steps: list[tuple[str, Callable[[], Awaitable[None]]]] = [
        ("RabbitMQ", close_event_bus),
        ("Redis", close_redis),
        ("PostgreSQL", close_db),
    ]
    for label, close in steps:
        try:
            await close()
        except Exception as e:
            await log_error(f"Ошибка при закрытии {label}: {e}")
    reset_stripe()


@asynccontextmanager
async def infrastructure() -> AsyncIterator[None]:
    """Инфраструктура на время блока; закрывается и при частичном старте."""
    try:
        await start_infrastructure()
        yield
    finally:
        await stop_infrastructure()
