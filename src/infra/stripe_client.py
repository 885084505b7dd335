# src/infra/stripe_client.py
"""
Асинхронный шлюз к Stripe.

Единственное место, где сервис обращается к платёжному процессору.
Использует async-методы официального SDK (HTTP-клиент httpx).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe

from src.common.exceptions import ProcessorNotConfiguredError
from src.common.logger import log_info
from src.common.constants import TypeMsg


def to_minor_units(amount: float) -> int:
    """Переводит сумму в центы (round(amount * 100))."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(cents: int | None) -> float:
    """Переводит центы в сумму в валюте."""
    if not cents:
        return 0.0
    return float(Decimal(cents) / 100)


class StripeGateway:
    """
    Обёртка над Stripe SDK.

    Ключ передаётся в каждый запрос, глобальный stripe.api_key не используется.
    Методы возвращают объекты Stripe как есть; ошибки SDK
    (stripe.StripeError) пробрасываются вызывающему коду.
    """

    def __init__(
        self,
        secret_key: str,
        api_version: str | None = None,
        max_network_retries: int = 2,
        webhook_secret: str = "",
    ) -> None:
        self._secret_key = secret_key
        self._api_version = api_version
        self._webhook_secret = webhook_secret
        stripe.max_network_retries = max_network_retries

    def _opts(self, **extra: Any) -> dict[str, Any]:
        opts: dict[str, Any] = {"api_key": self._secret_key}
        if self._api_version:
            opts["stripe_version"] = self._api_version
        opts.update({k: v for k, v in extra.items() if v is not None})
        return opts

    # =========================================================================
    # CONNECT: АККАУНТЫ, ПЕРЕВОДЫ, ВЫПЛАТЫ
    # =========================================================================

    async def retrieve_account(self, account_id: str) -> stripe.Account:
        """Получает подключённый аккаунт водителя."""
        return await stripe.Account.retrieve_async(account_id, **self._opts())

    async def list_bank_accounts(self, account_id: str, limit: int = 1) -> list[Any]:
        """Банковские счета подключённого аккаунта (первая страница)."""
        accounts = await stripe.Account.list_external_accounts_async(
            account_id, object="bank_account", limit=limit, **self._opts()
        )
        return list(accounts.data)


    async def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> stripe.Transfer:
        """
        Переводит средства с баланса платформы на подключённый аккаунт.

        Args:
            amount: Сумма в центах
            currency: Валюта (ISO, нижний регистр)
            destination: ID подключённого аккаунта
            metadata: Метаданные перевода
            idempotency_key: Ключ идемпотентности
        """
        return await stripe.Transfer.create_async(
            amount=amount,
            currency=currency,
            destination=destination,
            metadata=metadata,
            **self._opts(idempotency_key=idempotency_key),
        )

    async def create_payout(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        stripe_account: str,
        description: str | None = None,
        method: str | None = None,
        idempotency_key: str | None = None,
    ) -> stripe.Payout:
        """
        Создаёт выплату с баланса подключённого аккаунта на его банковский счёт.

        Args:
            amount: Сумма в центах
            currency: Валюта
            metadata: Метаданные выплаты
            stripe_account: ID подключённого аккаунта (запрос от его имени)
            description: Описание выплаты
            method: standard или instant
            idempotency_key: Ключ идемпотентности
        """
        params: dict[str, Any] = {"amount": amount, "currency": currency, "metadata": metadata}
        if description:
            params["description"] = description
        if method:
            params["method"] = method
        return await stripe.Payout.create_async(
            **params,
            **self._opts(stripe_account=stripe_account, idempotency_key=idempotency_key),
        )

    # =========================================================================
    # PAYMENT INTENTS
    # =========================================================================

    async def retrieve_payment_intent(self, payment_intent_id: str) -> stripe.PaymentIntent:
        return await stripe.PaymentIntent.retrieve_async(payment_intent_id, **self._opts())

    async def capture_payment_intent(
        self,
        payment_intent_id: str,
        amount_to_capture: int | None = None,
    ) -> stripe.PaymentIntent:
        params: dict[str, Any] = {}
        if amount_to_capture is not None:
            params["amount_to_capture"] = amount_to_capture
        return await stripe.PaymentIntent.capture_async(payment_intent_id, **params, **self._opts())

    async def cancel_payment_intent(self, payment_intent_id: str) -> stripe.PaymentIntent:
        return await stripe.PaymentIntent.cancel_async(payment_intent_id, **self._opts())

    async def create_payment_intent(self, **params: Any) -> stripe.PaymentIntent:
        """Создаёт PaymentIntent с переданными параметрами."""
        return await stripe.PaymentIntent.create_async(**params, **self._opts())

    # =========================================================================
    # CHARGES, REFUNDS, CUSTOMERS
    # =========================================================================

    async def list_charges(self, payment_intent_id: str, limit: int = 1) -> list[stripe.Charge]:
        """Возвращает списания по PaymentIntent (первая страница)."""
        charges = await stripe.Charge.list_async(
            payment_intent=payment_intent_id, limit=limit, **self._opts()
        )
        return list(charges.data)

    async def create_refund(
        self,
        charge_id: str,
        amount: int | None = None,
        reason: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> stripe.Refund:
        """
        Создаёт возврат по списанию.

        Args:
            charge_id: ID списания
            amount: Сумма в центах (None = полный возврат)
            reason: Причина возврата
            metadata: Метаданные
        """
        params: dict[str, Any] = {"charge": charge_id}
        if amount is not None:
            params["amount"] = amount
        if reason:
            params["reason"] = reason
        if metadata:
            params["metadata"] = metadata
        return await stripe.Refund.create_async(**params, **self._opts())

    async def create_customer(
        self,
        email: str | None,
        name: str | None,
        metadata: dict[str, str],
    ) -> stripe.Customer:
        return await stripe.Customer.create_async(
            email=email, name=name, metadata=metadata, **self._opts()
        )

    # =========================================================================
    # WEBHOOKS
    # =========================================================================

    def construct_webhook_event(self, payload: bytes, signature: str) -> stripe.Event:
        """
        Проверяет подпись и разбирает событие вебхука.

        Raises:
            ValueError: некорректный payload
            stripe.SignatureVerificationError: неверная подпись
        """
        if not self._webhook_secret:
            raise ProcessorNotConfiguredError("Stripe webhook secret is not configured")
        return stripe.Webhook.construct_event(payload, signature, self._webhook_secret)


# Глобальный экземпляр
_gateway: StripeGateway | None = None


def get_stripe() -> StripeGateway:
    """
    Возвращает настроенный шлюз Stripe.

    Raises:
        ProcessorNotConfiguredError: секретный ключ не задан или некорректен
    """
    global _gateway
    if _gateway is not None:
        return _gateway

    from src.config import settings

    if not settings.stripe.is_configured:
        raise ProcessorNotConfiguredError()

    _gateway = StripeGateway(
        secret_key=settings.stripe.STRIPE_SECRET_KEY,
        api_version=settings.stripe.STRIPE_API_VERSION,
        max_network_retries=settings.stripe.STRIPE_MAX_NETWORK_RETRIES,
        webhook_secret=settings.stripe.STRIPE_WEBHOOK_SECRET,
    )
    return _gateway


def get_stripe_or_none() -> StripeGateway | None:
    """Как get_stripe(), но возвращает None вместо исключения."""
    try:
        return get_stripe()
    except ProcessorNotConfiguredError:
        return None


async def init_stripe() -> None:
    """Проверяет конфигурацию Stripe при старте компонента."""
    gateway = get_stripe_or_none()
    if gateway is None:
        await log_info(
            "Stripe не настроен: операции с платежами и выплатами будут отклоняться",
            type_msg=TypeMsg.WARNING,
        )
    else:
        await log_info("Stripe шлюз инициализирован", type_msg=TypeMsg.INFO)


def reset_stripe() -> None:
    """Сбрасывает кэшированный шлюз."""
    global _gateway
    _gateway = None
