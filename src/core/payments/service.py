# src/core/payments/service.py
"""
Сервис жизненного цикла платежа за бронирование.

Списание, возврат, отмена авторизации и повтор оплаты новым способом.
Каждая операция касается одного бронирования и пробрасывает ошибку
вызывающему коду (HTTP-обработчику).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, TypeVar

import stripe

from src.common.constants import PaymentStatus, RefundReason, TypeMsg
from src.common.exceptions import (
    BookingNotFoundError,
    InvalidPaymentStateError,
    PaymentIntentNotFoundError,
    PaymentOperationError,
    ProcessorNotConfiguredError,
)
from src.common.logger import log_error, log_info
from src.core.payments.repository import BookingRepository
from src.infra.database import DatabaseManager
from src.infra.event_bus import EventBus
from src.infra.stripe_client import StripeGateway, from_minor_units, to_minor_units
from src.shared.events.payment_events import (
    PaymentCanceled,
    PaymentCaptured,
    PaymentRefunded,
    PaymentRetried,
)
from src.shared.models.payment import (
    CancelResult,
    CaptureResult,
    PaymentStatusInfo,
    RefundResult,
    RetryResult,
)

T = TypeVar("T")

ALREADY_CAPTURED_MESSAGE = "Payment already captured"
ALREADY_CANCELED_MESSAGE = "Payment already canceled"
CANCEL_CAPTURED_MESSAGE = "Cannot cancel a payment that has already been captured"
NO_CHARGE_MESSAGE = "No charge found for this payment intent"


def map_intent_status(intent_status: str | None) -> PaymentStatus:
    """
    Переводит статус PaymentIntent в локальный статус оплаты бронирования.

    requires_capture -> authorized, succeeded -> captured,
    canceled и незавершённые requires_* / processing -> failed,
    остальное -> pending.
    """
    match intent_status:
        case "requires_capture":
            return PaymentStatus.AUTHORIZED
        case "succeeded":
            return PaymentStatus.CAPTURED
        case (
            "canceled"
            | "requires_payment_method"
            | "requires_confirmation"
            | "requires_action"
            | "processing"
        ):
            return PaymentStatus.FAILED
        case _:
            return PaymentStatus.PENDING


class PaymentLifecycleService:
    """
    Сервис операций над платежами.

    Реализует:
    - Списание авторизованного платежа (идемпотентно)
    - Полный и частичный возврат
    - Отмену авторизации
    - Повтор оплаты бронирования
    """

    def __init__(
        self,
        db: DatabaseManager,
        event_bus: EventBus,
        stripe_gateway: StripeGateway | None,
        *,
        repository: BookingRepository | None = None,
        currency: str = "usd",
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            event_bus: Шина событий
            stripe_gateway: Шлюз Stripe (None = процессор не настроен)
            repository: Репозиторий бронирований
            currency: Валюта новых платежей
        """
        self._db = db
        self._event_bus = event_bus
        self._stripe = stripe_gateway
        self._bookings = repository or BookingRepository(db)
        self._currency = currency

    @property
    def gateway(self) -> StripeGateway:
        if self._stripe is None:
            raise ProcessorNotConfiguredError()
        return self._stripe

    async def _call(self, operation: str, call: Awaitable[T]) -> T:
        """Выполняет запрос к Stripe, переводя ошибки SDK в PaymentOperationError."""
        try:
            return await call
        except stripe.StripeError as e:
            message = e.user_message or str(e) or f"Failed to {operation} payment"
            await log_error(f"Stripe: ошибка операции {operation}: {message}")
            raise PaymentOperationError(operation, message) from e

    # =========================================================================
    # CAPTURE
    # =========================================================================

    async def capture(self, payment_intent_id: str, amount: float | None = None) -> CaptureResult:
        """
        Списывает авторизованный платёж.

        Повторный вызов для уже списанного платежа возвращает успех.

        Args:
            payment_intent_id: ID PaymentIntent
            amount: Сумма списания (None = вся авторизованная сумма)

        Raises:
            InvalidPaymentStateError: PaymentIntent не в статусе requires_capture
            PaymentOperationError: ошибка Stripe
        """
        gateway = self.gateway
        intent = await self._call("capture", gateway.retrieve_payment_intent(payment_intent_id))

        if intent.status == "succeeded":
            return CaptureResult(
                payment_intent_id=payment_intent_id,
                status=intent.status,
                amount=from_minor_units(intent.amount),
                currency=intent.currency,
                message=ALREADY_CAPTURED_MESSAGE,
            )

        if intent.status != "requires_capture":
            raise InvalidPaymentStateError("capture", intent.status)

        captured = await self._call(
            "capture",
            gateway.capture_payment_intent(
                payment_intent_id,
                amount_to_capture=to_minor_units(amount) if amount else None,
            ),
        )
        captured_amount = from_minor_units(captured.amount)
        currency = captured.currency or self._currency

        booking = await self._bookings.get_by_payment_intent(payment_intent_id)
        if booking is not None:
            await self._bookings.mark_captured(booking.id, captured_amount, currency)

        await log_info(f"Платёж {payment_intent_id} списан: {captured_amount:.2f} {currency}", type_msg=TypeMsg.INFO)
        await self._event_bus.publish(
            PaymentCaptured(
                payment_intent_id=captured.id,
                booking_id=booking.id if booking else None,
                amount=captured_amount,
                currency=currency,
            )
        )

        return CaptureResult(
            payment_intent_id=captured.id,
            status=captured.status,
            amount=captured_amount,
            currency=currency,
            message="Payment captured successfully",
        )

    # =========================================================================
    # REFUND
    # =========================================================================

    async def refund(
        self,
        payment_intent_id: str,
        amount: float | None = None,
        reason: RefundReason | str = RefundReason.REQUESTED_BY_CUSTOMER,
    ) -> RefundResult:
        """
        Возвращает платёж полностью или частично.

        Статус бронирования становится refunded, если возвращено не меньше
        исходной суммы, иначе partially_refunded.

        Args:
            payment_intent_id: ID PaymentIntent
            amount: Сумма возврата (None = полный возврат)
            reason: Причина возврата

        Raises:
            PaymentOperationError: нет списания или ошибка Stripe
        """
        gateway = self.gateway
        intent = await self._call("refund", gateway.retrieve_payment_intent(payment_intent_id))

        charges = await self._call("refund", gateway.list_charges(payment_intent_id, limit=1))
        if not charges or not getattr(charges[0], "id", None):
            raise PaymentOperationError("refund", NO_CHARGE_MESSAGE)

        intent_metadata: Any = getattr(intent, "metadata", None) or {}
        refund = await self._call(
            "refund",
            gateway.create_refund(
                charges[0].id,
                amount=to_minor_units(amount) if amount else None,
                reason=RefundReason(reason).value,
                metadata={
                    "paymentIntentId": payment_intent_id,
                    "bookingId": intent_metadata.get("bookingId", "unknown"),
                },
            ),
        )
        refunded = from_minor_units(refund.amount)

        booking = await self._bookings.get_by_payment_intent(payment_intent_id)
        original = (
            booking.payment_amount
            if booking is not None and booking.payment_amount
            else from_minor_units(intent.amount)
        )
        payment_status = PaymentStatus.REFUNDED if refunded >= original else PaymentStatus.PARTIALLY_REFUNDED

        if booking is not None:
            await self._bookings.mark_refunded(
                booking.id, payment_status, refunded, datetime.now(timezone.utc)
            )

        await log_info(
            f"Возврат {refund.id} по {payment_intent_id}: {refunded:.2f} ({payment_status.value})",
            type_msg=TypeMsg.INFO,
        )
        await self._event_bus.publish(
            PaymentRefunded(
                payment_intent_id=payment_intent_id,
                booking_id=booking.id if booking else None,
                refund_id=refund.id,
                amount=refunded,
                payment_status=payment_status.value,
            )
        )

        return RefundResult(
            refund_id=refund.id,
            amount=refunded,
            status=getattr(refund, "status", None),
            payment_status=payment_status,
        )

    # =========================================================================
    # CANCEL
    # =========================================================================

    async def cancel(self, payment_intent_id: str) -> CancelResult:
        """
        Отменяет авторизацию платежа без списания.

        Raises:
            InvalidPaymentStateError: платёж уже списан
            PaymentOperationError: ошибка Stripe
        """
        gateway = self.gateway
        intent = await self._call("cancel", gateway.retrieve_payment_intent(payment_intent_id))

        if intent.status == "canceled":
            return CancelResult(
                payment_intent_id=payment_intent_id,
                status=intent.status,
                message=ALREADY_CANCELED_MESSAGE,
            )

        if intent.status == "succeeded":
            raise InvalidPaymentStateError("cancel", intent.status, CANCEL_CAPTURED_MESSAGE)

        canceled = await self._call("cancel", gateway.cancel_payment_intent(payment_intent_id))

        booking = await self._bookings.get_by_payment_intent(payment_intent_id)
        if booking is not None:
            await self._bookings.mark_payment_failed(booking.id)

        await log_info(f"Авторизация {payment_intent_id} отменена", type_msg=TypeMsg.INFO)
        await self._event_bus.publish(
            PaymentCanceled(payment_intent_id=payment_intent_id, booking_id=booking.id if booking else None)
        )

        return CancelResult(
            payment_intent_id=payment_intent_id,
            status=canceled.status,
            message="Payment canceled successfully",
        )

    # =========================================================================
    # RETRY
    # =========================================================================

    async def retry(self, booking_id: int, payment_method_id: str) -> RetryResult:
        """
        Повторяет оплату бронирования новым способом оплаты.

        Создаёт новый PaymentIntent с ручным подтверждением и списанием
        и перезаписывает им платёжные поля бронирования.

        Args:
            booking_id: ID бронирования
            payment_method_id: ID нового способа оплаты

        Raises:
            BookingNotFoundError: бронирование не найдено
            PaymentIntentNotFoundError: у бронирования не было платежа
            PaymentOperationError: ошибка Stripe
        """
        gateway = self.gateway

        booking = await self._bookings.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        if not booking.payment_intent_id:
            raise PaymentIntentNotFoundError("No payment intent found for this booking")

        amount_cents = to_minor_units(booking.number_of_seats * booking.effective_price_per_seat)

        customer_id = booking.rider_customer_id
        if not customer_id:
            customer = await self._call(
                "retry",
                gateway.create_customer(
                    email=booking.rider_email,
                    name=booking.rider_name,
                    metadata={"riderId": str(booking.rider_id)},
                ),
            )
            customer_id = customer.id
            await self._bookings.set_customer_id(booking.rider_id, customer_id)

        intent = await self._call(
            "retry",
            gateway.create_payment_intent(
                amount=amount_cents,
                currency=self._currency,
                customer=customer_id,
                payment_method=payment_method_id,
                payment_method_types=["card"],
                capture_method="manual",
                confirmation_method="manual",
                confirm=True,
                metadata={
                    "bookingId": str(booking_id),
                    "rideId": str(booking.ride_id),
                    "riderId": str(booking.rider_id),
                    "numberOfSeats": str(booking.number_of_seats),
                    "isRetry": "true",
                    "originalPaymentIntentId": booking.payment_intent_id,
                },
            ),
        )

        payment_status = map_intent_status(intent.status)
        amount = from_minor_units(amount_cents)
        await self._bookings.replace_payment(booking_id, intent.id, payment_status, amount, self._currency)

        await log_info(
            f"Повтор оплаты бронирования {booking_id}: {intent.id} ({payment_status.value})",
            type_msg=TypeMsg.INFO,
        )
        await self._event_bus.publish(
            PaymentRetried(
                booking_id=booking_id,
                payment_intent_id=intent.id,
                original_payment_intent_id=booking.payment_intent_id,
                payment_status=payment_status.value,
                amount=amount,
            )
        )

        return RetryResult(
            booking_id=booking_id,
            payment_intent_id=intent.id,
            client_secret=getattr(intent, "client_secret", None),
            status=intent.status,
            payment_status=payment_status,
            amount=amount,
        )

    # =========================================================================
    # STATUS
    # =========================================================================

    async def get_payment_status(self, booking_id: int) -> PaymentStatusInfo:
        """Локальное состояние оплаты бронирования."""
        booking = await self._bookings.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)

        return PaymentStatusInfo(
            booking_id=booking.id,
            payment_intent_id=booking.payment_intent_id,
            payment_status=booking.payment_status,
            payment_amount=booking.payment_amount,
            payment_currency=booking.payment_currency,
            refund_amount=booking.refund_amount,
            refunded_at=booking.refunded_at,
        )
