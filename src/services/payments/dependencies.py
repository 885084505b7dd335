# src/services/payments/dependencies.py
"""
Dependency Injection для Payments Service.

Инфраструктура передаётся один раз из lifespan, сервисы создаются
лениво при первом запросе и живут до cleanup_dependencies().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from src.core.earnings.service import EarningsService
    from src.core.payments.service import PaymentLifecycleService
    from src.core.payouts.service import WeeklyPayoutService
    from src.infra.database import DatabaseManager
    from src.infra.event_bus import EventBus
    from src.infra.redis_client import RedisClient
    from src.infra.stripe_client import StripeGateway


@dataclass
class _Container:
    db: Optional["DatabaseManager"] = None
    redis: Optional["RedisClient"] = None
    event_bus: Optional["EventBus"] = None
    stripe: Optional["StripeGateway"] = None

    payouts: Optional["WeeklyPayoutService"] = None
    earnings: Optional["EarningsService"] = None
    payments: Optional["PaymentLifecycleService"] = None

    def require(self, name: str) -> Any:
        value = getattr(self, name)
        if value is None:
            raise RuntimeError(f"Зависимость '{name}' не инициализирована. Вызовите init_dependencies()")
        return value


_container = _Container()


async def init_dependencies(
    db: "DatabaseManager",
    redis: "RedisClient",
    event_bus: "EventBus",
    stripe: "StripeGateway | None" = None,
) -> None:
    """Привязать инфраструктуру при старте приложения."""
    global _container
    _container = _Container(db=db, redis=redis, event_bus=event_bus, stripe=stripe)


async def cleanup_dependencies() -> None:
    """Сбросить кэш сервисов и шлюз Stripe."""
    _container.payouts = None
    _container.earnings = None
    _container.payments = None
    _container.stripe = None


def reset_dependencies() -> None:
    """Полностью очистить контейнер (для тестов)."""
    global _container
    _container = _Container()


# === INFRA ===

def get_db() -> "DatabaseManager":
    return _container.require("db")


def get_redis() -> "RedisClient":
    return _container.require("redis")


def get_event_bus() -> "EventBus":
    return _container.require("event_bus")


def get_stripe_gateway() -> "StripeGateway | None":
    """Шлюз Stripe или None, если процессор не настроен."""
    return _container.stripe


# === SERVICES ===

def get_payout_service() -> "WeeklyPayoutService":
    if _container.payouts is None:
        from src.core.payouts.service import WeeklyPayoutService

        _container.payouts = WeeklyPayoutService.from_settings(
            db=get_db(),
            redis=get_redis(),
            event_bus=get_event_bus(),
            stripe=get_stripe_gateway(),
        )
    return _container.payouts


def get_earnings_service() -> "EarningsService":
    if _container.earnings is None:
        from src.core.earnings.service import EarningsService

        _container.earnings = EarningsService.from_settings(db=get_db())
    return _container.earnings


def get_payment_service() -> "PaymentLifecycleService":
    if _container.payments is None:
        from src.config import settings
        from src.core.payments.service import PaymentLifecycleService

        _container.payments = PaymentLifecycleService(
            db=get_db(),
            event_bus=get_event_bus(),
            stripe_gateway=get_stripe_gateway(),
            currency=settings.stripe.CURRENCY,
        )
    return _container.payments


# === HEALTH ===

async def dependency_health() -> Dict[str, str]:
    """
    Состояние зависимостей для /health.

    Postgres, Redis и RabbitMQ: "ok" или "unavailable".
    Stripe: "configured" или "not_configured".
    """
    report: Dict[str, str] = {}
    for name in ("db", "redis", "event_bus"):
        component = getattr(_container, name)
        healthy = component is not None and await component.health_check()
        report[name] = "ok" if healthy else "unavailable"
    report["stripe"] = "configured" if _container.stripe is not None else "not_configured"
    return report
