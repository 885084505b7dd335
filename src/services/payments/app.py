# src/services/payments/app.py
"""
FastAPI приложение для Payments Service.

Endpoints:
- GET /health - проверка здоровья
- POST /api/v1/payouts/run - запустить еженедельные выплаты
- GET /api/v1/payouts/{driver_id} - история выплат водителя
- GET /api/v1/payouts/{driver_id}/balance - доступный к выплате баланс
- GET /api/v1/payouts/{driver_id}/account-status - статус аккаунта выплат
- POST /api/v1/payouts/webhook - вебхук Stripe о статусах выплат
- GET /api/v1/earnings/{driver_id} - заработок водителя
- GET /api/v1/earnings/{driver_id}/summary - сводка заработка
- POST /api/v1/payments/{payment_intent_id}/capture - списать платёж
- POST /api/v1/payments/{payment_intent_id}/refund - вернуть платёж
- POST /api/v1/payments/{payment_intent_id}/cancel - отменить авторизацию
- POST /api/v1/bookings/{booking_id}/payment/retry - повторить оплату
- GET /api/v1/bookings/{booking_id}/payment - статус оплаты бронирования
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Annotated, NoReturn

import stripe
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request

from src.common.constants import TypeMsg
from src.common.exceptions import (
    BookingNotFoundError,
    DriverNotFoundError,
    InvalidPaymentStateError,
    PaymentIntentNotFoundError,
    PaymentOperationError,
    PaymentsError,
    PayoutRunInProgressError,
    ProcessorNotConfiguredError,
)
from src.common.logger import log_error, log_info
from src.core.earnings.service import EarningsService
from src.core.payments.service import PaymentLifecycleService
from src.core.payouts.service import WeeklyPayoutService
from src.infra.stripe_client import StripeGateway
from src.services.payments.dependencies import (
    cleanup_dependencies,
    dependency_health,
    get_earnings_service,
    get_payment_service,
    get_payout_service,
    get_stripe_gateway,
    init_dependencies,
)
from src.shared.models.common import ErrorResponse, HealthStatus, PaginatedResponse, PaginationParams
from src.shared.models.earnings import DriverEarningsReport, EarningsSummary
from src.shared.models.payment import (
    CancelResult,
    CaptureRequest,
    CaptureResult,
    PaymentStatusInfo,
    RefundRequest,
    RefundResult,
    RetryRequest,
    RetryResult,
)
from src.shared.models.payout import DriverAccountStatus, DriverBalance, Payout, PayoutRunReport

SERVICE_NAME = "payments_service"

# Статусы выплат из вебхуков; completed ставится только по payout.paid
PAYOUT_WEBHOOK_EVENTS = {
    "transfer.reversed": "canceled",
    "payout.paid": "paid",
    "payout.failed": "failed",
    "payout.canceled": "canceled",
}


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Подключения живут столько же, сколько приложение."""
    from src.common.logger import setup_logging
    from src.infra.database import get_db
    from src.infra.event_bus import get_event_bus
    from src.infra.lifecycle import infrastructure
    from src.infra.redis_client import get_redis
    from src.infra.stripe_client import get_stripe_or_none

    setup_logging()
    async with infrastructure():
        await init_dependencies(get_db(), get_redis(), get_event_bus(), get_stripe_or_none())
        try:
            yield
        finally:
            await cleanup_dependencies()


# === APP ===

app = FastAPI(
    title="Payments Service",
    description="Заработок водителей, еженедельные выплаты и жизненный цикл платежей (Stripe).",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


def _raise_http(exc: PaymentsError) -> NoReturn:
    """Переводит доменную ошибку в HTTPException."""
    if isinstance(exc, ProcessorNotConfiguredError):
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if isinstance(exc, (BookingNotFoundError, DriverNotFoundError, PaymentIntentNotFoundError)):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, (InvalidPaymentStateError, PayoutRunInProgressError)):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if isinstance(exc, PaymentOperationError):
        raise HTTPException(status_code=400, detail=exc.message) from exc
    raise HTTPException(status_code=400, detail=str(exc)) from exc


_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# === HEALTH CHECK ===

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    """Проверка здоровья сервиса и его зависимостей."""
    report = await dependency_health()
    infra_ok = all(report[name] == "ok" for name in ("db", "redis", "event_bus"))
    return HealthStatus(
        status="healthy" if infra_ok else "degraded",
        service=SERVICE_NAME,
        version=app.version,
        dependencies=report,
    )


# === PAYOUTS ENDPOINTS ===

@app.post(
    "/api/v1/payouts/run",
    response_model=PayoutRunReport,
    responses=_ERROR_RESPONSES,
    tags=["Payouts"],
    summary="Запустить еженедельные выплаты",
)
async def run_weekly_payouts(
    service: Annotated[WeeklyPayoutService, Depends(get_payout_service)],
    now: datetime | None = Query(default=None, description="Момент запуска (для пересчёта окна)"),
) -> PayoutRunReport:
    """
    Запустить выплаты всем водителям с подключённым аккаунтом.

    Ошибки отдельных водителей попадают в отчёт и не прерывают запуск.
    Повторный параллельный запуск отклоняется с кодом 409.
    """
    try:
        return await service.run_weekly_payouts(now=now)
    except PaymentsError as e:
        _raise_http(e)


@app.get(
    "/api/v1/payouts/{driver_id}",
    response_model=PaginatedResponse[Payout],
    tags=["Payouts"],
    summary="История выплат водителя",
)
async def get_payout_history(
    driver_id: int,
    service: Annotated[WeeklyPayoutService, Depends(get_payout_service)],
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> PaginatedResponse[Payout]:
    """Выплаты водителя, от новых к старым."""
    return await service.get_payout_history(driver_id, PaginationParams(page=page, page_size=page_size))


@app.get(
    "/api/v1/payouts/{driver_id}/balance",
    response_model=DriverBalance,
    responses={404: {"model": ErrorResponse}},
    tags=["Payouts"],
    summary="Доступный к выплате баланс",
)
async def get_driver_balance(
    driver_id: int,
    service: Annotated[WeeklyPayoutService, Depends(get_payout_service)],
) -> DriverBalance:
    """Net за текущее окно, незавершённые выплаты и остаток к выплате."""
    try:
        return await service.get_driver_balance(driver_id)
    except PaymentsError as e:
        _raise_http(e)


@app.get(
    "/api/v1/payouts/{driver_id}/account-status",
    response_model=DriverAccountStatus,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["Payouts"],
    summary="Статус аккаунта выплат в Stripe",
)
async def get_account_status(
    driver_id: int,
    service: Annotated[WeeklyPayoutService, Depends(get_payout_service)],
) -> DriverAccountStatus:
    try:
        return await service.get_account_status(driver_id)
    except PaymentsError as e:
        _raise_http(e)


@app.post(
    "/api/v1/payouts/webhook",
    tags=["Payouts"],
    summary="Вебхук Stripe о статусах выплат",
)
async def payouts_webhook(
    request: Request,
    service: Annotated[WeeklyPayoutService, Depends(get_payout_service)],
    gateway: Annotated[StripeGateway | None, Depends(get_stripe_gateway)],
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
) -> dict:
    """
    Принимает события Stripe с проверкой подписи.

    transfer.reversed и payout.* обновляют статус выплаты, остальные события
    подтверждаются без обработки.
    """
    if gateway is None:
        raise HTTPException(status_code=503, detail="Stripe is not configured")
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")

    payload = await request.body()
    try:
        event = gateway.construct_webhook_event(payload, stripe_signature)
    except ProcessorNotConfiguredError as e:
        _raise_http(e)
    except (ValueError, stripe.SignatureVerificationError) as e:
        await log_error(f"Проверка подписи вебхука не пройдена: {e}")
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    event_type = event["type"]
    obj = event["data"]["object"]

    processor_status = PAYOUT_WEBHOOK_EVENTS.get(event_type)
    if processor_status is None:
        await log_info(f"Необработанное событие вебхука: {event_type}", type_msg=TypeMsg.DEBUG)
        return {"received": True, "handled": False}

    updated = await service.update_payout_status(
        obj["id"],
        processor_status,
        failure_code=obj.get("failure_code"),
        failure_message=obj.get("failure_message"),
    )
    return {"received": True, "handled": True, "updated": updated}


# === EARNINGS ENDPOINTS ===

@app.get(
    "/api/v1/earnings/{driver_id}",
    response_model=DriverEarningsReport,
    tags=["Earnings"],
    summary="Заработок водителя",
)
async def get_driver_earnings(
    driver_id: int,
    service: Annotated[EarningsService, Depends(get_earnings_service)],
    since: datetime | None = Query(default=None),
) -> DriverEarningsReport:
    """Заработок по завершённым поездкам с разбивкой комиссий."""
    return await service.get_driver_earnings(driver_id, since=since)


@app.get(
    "/api/v1/earnings/{driver_id}/summary",
    response_model=EarningsSummary,
    tags=["Earnings"],
    summary="Сводка заработка",
)
async def get_earnings_summary(
    driver_id: int,
    service: Annotated[EarningsService, Depends(get_earnings_service)],
) -> EarningsSummary:
    return await service.get_earnings_summary(driver_id)


# === PAYMENTS ENDPOINTS ===

@app.post(
    "/api/v1/payments/{payment_intent_id}/capture",
    response_model=CaptureResult,
    responses=_ERROR_RESPONSES,
    tags=["Payments"],
    summary="Списать авторизованный платёж",
)
async def capture_payment(
    payment_intent_id: str,
    service: Annotated[PaymentLifecycleService, Depends(get_payment_service)],
    request: CaptureRequest | None = None,
) -> CaptureResult:
    """Повторное списание уже списанного платежа возвращает успех."""
    try:
        return await service.capture(payment_intent_id, amount=request.amount if request else None)
    except PaymentsError as e:
        _raise_http(e)


@app.post(
    "/api/v1/payments/{payment_intent_id}/refund",
    response_model=RefundResult,
    responses=_ERROR_RESPONSES,
    tags=["Payments"],
    summary="Вернуть платёж",
)
async def refund_payment(
    payment_intent_id: str,
    service: Annotated[PaymentLifecycleService, Depends(get_payment_service)],
    request: RefundRequest | None = None,
) -> RefundResult:
    """Без суммы выполняется полный возврат."""
    request = request or RefundRequest()
    try:
        return await service.refund(payment_intent_id, amount=request.amount, reason=request.reason)
    except PaymentsError as e:
        _raise_http(e)


@app.post(
    "/api/v1/payments/{payment_intent_id}/cancel",
    response_model=CancelResult,
    responses=_ERROR_RESPONSES,
    tags=["Payments"],
    summary="Отменить авторизацию",
)
async def cancel_payment(
    payment_intent_id: str,
    service: Annotated[PaymentLifecycleService, Depends(get_payment_service)],
) -> CancelResult:
    try:
        return await service.cancel(payment_intent_id)
    except PaymentsError as e:
        _raise_http(e)


# === BOOKINGS ENDPOINTS ===

@app.post(
    "/api/v1/bookings/{booking_id}/payment/retry",
    response_model=RetryResult,
    responses=_ERROR_RESPONSES,
    tags=["Bookings"],
    summary="Повторить оплату бронирования",
)
async def retry_booking_payment(
    booking_id: int,
    request: RetryRequest,
    service: Annotated[PaymentLifecycleService, Depends(get_payment_service)],
) -> RetryResult:
    try:
        return await service.retry(booking_id, request.payment_method_id)
    except PaymentsError as e:
        _raise_http(e)


@app.get(
    "/api/v1/bookings/{booking_id}/payment",
    response_model=PaymentStatusInfo,
    responses={404: {"model": ErrorResponse}},
    tags=["Bookings"],
    summary="Статус оплаты бронирования",
)
async def get_booking_payment_status(
    booking_id: int,
    service: Annotated[PaymentLifecycleService, Depends(get_payment_service)],
) -> PaymentStatusInfo:
    try:
        return await service.get_payment_status(booking_id)
    except PaymentsError as e:
        _raise_http(e)
