# src/core/payouts/service.py
"""
Сервис еженедельных выплат водителям.

Для каждого водителя с подключённым аккаунтом: считает net-заработок
за окно, вычитает незавершённые выплаты и при положительном остатке
создаёт пару transfer + payout в Stripe. Ошибка одного водителя
не прерывает запуск для остальных.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from src.common.constants import (
    WEEKLY_PAYOUT_TYPE,
    PayoutMethod,
    PayoutStatus,
    TypeMsg,
)
from src.common.exceptions import DriverNotFoundError, PayoutRunInProgressError, ProcessorNotConfiguredError
from src.common.logger import log_error, log_info
from src.core.earnings.calculator import DEFAULT_FEES, FeeSchedule, calculate_ride_earnings
from src.core.payouts.repository import PayoutRepository
from src.core.payouts.schedule import PayoutWindow, payout_window, window_key
from src.infra.database import DatabaseManager
from src.infra.event_bus import EventBus
from src.infra.redis_client import RedisClient
from src.infra.stripe_client import StripeGateway, from_minor_units, to_minor_units
from src.shared.events.payout_events import PayoutCreated, PayoutFailed, PayoutStatusChanged
from src.shared.models.common import PaginatedResponse, PaginationParams
from src.shared.models.payout import (
    BankAccountInfo,
    DriverAccountStatus,
    DriverBalance,
    DriverPayoutResult,
    Payout,
    PayoutCreate,
    PayoutRunReport,
)

RUN_LOCK_NAME = "weekly_payouts:run"

REASON_NO_DRIVER = "Driver not found"
REASON_NOT_DRIVER = "User is not a driver"
REASON_NO_ACCOUNT = "Driver Stripe account not found"
REASON_PAYOUTS_DISABLED = "Payouts are not enabled on Stripe account"
REASON_NO_EARNINGS = "No earnings available"
REASON_BELOW_MINIMUM = "Available balance is below the minimum payout amount"
REASON_ALREADY_ISSUED = "Payout already issued for this window"


def map_payout_status(processor_status: str | None) -> PayoutStatus:
    """
    Переводит статус payout/transfer Stripe в локальный статус выплаты.

    paid -> completed, pending/in_transit -> pending, failed -> failed,
    canceled -> canceled, остальное -> pending.
    """
    match processor_status:
        case "paid":
            return PayoutStatus.COMPLETED
        case "pending" | "in_transit":
            return PayoutStatus.PENDING
        case "failed":
            return PayoutStatus.FAILED
        case "canceled" | "cancelled":
            return PayoutStatus.CANCELED
        case _:
            return PayoutStatus.PENDING


def _arrival(value: Any) -> datetime | None:
    """arrival_date Stripe: unix timestamp."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class WeeklyPayoutService:
    """
    Сервис еженедельных выплат.

    Реализует:
    - Расчёт доступного к выплате остатка водителя
    - Transfer + payout через Stripe с защитой от повторной выплаты за окно
    - Параллельную обработку водителей с ограничением конкурентности
    - Обновление статусов выплат по вебхукам
    """

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient | None,
        event_bus: EventBus,
        stripe: StripeGateway | None,
        *,
        repository: PayoutRepository | None = None,
        fees: FeeSchedule = DEFAULT_FEES,
        window_days: int = 7,
        window_mode: str = "rolling",
        tz: str = "UTC",
        max_concurrency: int = 5,
        run_lock_ttl: int = 3600,
        currency: str = "usd",
        payout_method: str = PayoutMethod.BANK_ACCOUNT.value,
        min_amount: float = 0.0,
    ) -> None:
        """
        Инициализация сервиса.

        Args:
            db: Менеджер базы данных
            redis: Клиент Redis для блокировки запуска (None = без блокировки)
            event_bus: Шина событий
            stripe: Шлюз Stripe (None = процессор не настроен)
        """
        self._db = db
        self._redis = redis
        self._event_bus = event_bus
        self._stripe = stripe
        self._repo = repository or PayoutRepository(db)
        self._fees = fees
        self._window_days = window_days
        self._window_mode = window_mode
        self._tz = tz
        self._max_concurrency = max(1, max_concurrency)
        self._run_lock_ttl = run_lock_ttl
        self._currency = currency
        self._payout_method = PayoutMethod(payout_method)
        self._min_amount = min_amount

    @classmethod
    def from_settings(
        cls,
        db: DatabaseManager,
        redis: RedisClient | None,
        event_bus: EventBus,
        stripe: StripeGateway | None,
    ) -> WeeklyPayoutService:
        """Создаёт сервис с параметрами из конфигурации."""
        from src.config import settings

        payouts = settings.payouts
        return cls(
            db,
            redis,
            event_bus,
            stripe,
            fees=FeeSchedule.from_settings(),
            window_days=payouts.PAYOUT_WINDOW_DAYS,
            window_mode=payouts.PAYOUT_WINDOW_MODE,
            tz=payouts.TIMEZONE,
            max_concurrency=payouts.PAYOUT_MAX_CONCURRENCY,
            run_lock_ttl=payouts.PAYOUT_RUN_LOCK_TTL,
            currency=settings.stripe.CURRENCY,
            payout_method=payouts.PAYOUT_METHOD,
            min_amount=payouts.PAYOUT_MIN_AMOUNT,
        )

    def current_window(self, now: datetime | None = None) -> PayoutWindow:
        """Окно расчёта для момента now (по умолчанию текущий момент)."""
        return payout_window(
            now or datetime.now(timezone.utc),
            days=self._window_days,
            mode=self._window_mode,
            tz=self._tz,
        )

    # =========================================================================
    # ОДИН ВОДИТЕЛЬ
    # =========================================================================

    async def _window_totals(self, driver_id: int, window: PayoutWindow) -> tuple[float, float, int]:
        """(net за окно без округления, сумма незавершённых выплат, число поездок)."""
        rides = await self._repo.get_completed_rides(driver_id, since=window.start, until=window.end)

        # Суммируем неокруглённые значения, округляем только итог
        total_net = sum(
            calculate_ride_earnings(ride.price_per_seat, ride.bookings, self._fees, rounded=False).net_earnings
            for ride in rides
        )
        pending = await self._repo.sum_pending_payouts(driver_id, since=window.start)
        return total_net, pending, len(rides)

    async def calculate_available_balance(self, driver_id: int, window: PayoutWindow) -> tuple[float, float, int]:
        """
        Считает доступный к выплате остаток за окно.

        Returns:
            (available_balance, total_net_earnings, rides_count)
        """
        total_net, pending, rides_count = await self._window_totals(driver_id, window)
        available = round(max(0.0, total_net - pending), 2)
        return available, round(total_net, 2), rides_count

    async def get_driver_balance(self, driver_id: int, now: datetime | None = None) -> DriverBalance:
        """
        Баланс водителя за текущее окно: net, незавершённые выплаты, доступный остаток.

        Raises:
            DriverNotFoundError: пользователь не найден или не водитель
        """
        driver = await self._repo.get_driver(driver_id)
        if driver is None or not driver.is_driver:
            raise DriverNotFoundError(driver_id)

        window = self.current_window(now)
        total_net, pending, _ = await self._window_totals(driver_id, window)
        return DriverBalance(
            driver_id=driver_id,
            weekly_net_earnings=round(total_net, 2),
            pending_payouts=round(pending, 2),
            available_balance=round(max(0.0, total_net - pending), 2),
            currency=self._currency,
            window_start=window.start,
            window_end=window.end,
        )

    async def get_account_status(self, driver_id: int) -> DriverAccountStatus:
        """
        Состояние подключённого аккаунта водителя в Stripe.

        Флаг payouts_enabled из Stripe сохраняется у водителя.

        Raises:
            DriverNotFoundError: пользователь не найден или не водитель
            ProcessorNotConfiguredError: Stripe не настроен
        """
        driver = await self._repo.get_driver(driver_id)
        if driver is None or not driver.is_driver:
            raise DriverNotFoundError(driver_id)
        if not driver.stripe_account_id:
            return DriverAccountStatus(driver_id=driver_id, has_account=False)
        if self._stripe is None:
            raise ProcessorNotConfiguredError()

        account = await self._stripe.retrieve_account(driver.stripe_account_id)
        bank_accounts = await self._stripe.list_bank_accounts(driver.stripe_account_id)

        payouts_enabled = bool(getattr(account, "payouts_enabled", False))
        if payouts_enabled != driver.payouts_enabled:
            await self._repo.set_payouts_enabled(driver_id, payouts_enabled)
            await log_info(
                f"Водитель {driver_id}: payouts_enabled {driver.payouts_enabled} -> {payouts_enabled}",
                type_msg=TypeMsg.INFO,
            )

        details_submitted = bool(getattr(account, "details_submitted", False))
        requirements = getattr(account, "requirements", None)
        bank = bank_accounts[0] if bank_accounts else None
        return DriverAccountStatus(
            driver_id=driver_id,
            has_account=True,
            account_id=account.id,
            status="enabled" if details_submitted else "pending",
            charges_enabled=bool(getattr(account, "charges_enabled", False)),
            payouts_enabled=payouts_enabled,
            details_submitted=details_submitted,
            bank_account=BankAccountInfo(
                id=bank.id,
                last4=getattr(bank, "last4", None),
                bank_name=getattr(bank, "bank_name", None),
                account_type=getattr(bank, "account_type", None),
                status=getattr(bank, "status", None),
            ) if bank is not None else None,
            requirements_due=list(getattr(requirements, "currently_due", None) or []),
        )


    async def process_driver(self, driver_id: int, window: PayoutWindow) -> DriverPayoutResult:
        """
        Обрабатывает выплату одному водителю.

        Никогда не пробрасывает исключения: ошибка превращается
        в результат с success=False.

        Args:
            driver_id: ID водителя
            window: Окно расчёта

        Returns:
            DriverPayoutResult
        """
        try:
            return await self._process_driver(driver_id, window)
        except Exception as e:
            await log_error(f"Ошибка выплаты водителю {driver_id}: {e}", exc_info=True)
            await self._event_bus.publish(
                PayoutFailed(
                    driver_id=driver_id,
                    error_message=str(e),
                    window_start=window.start,
                    window_end=window.end,
                )
            )
            return DriverPayoutResult(driver_id=driver_id, success=False, error=str(e) or type(e).__name__)

    async def _process_driver(self, driver_id: int, window: PayoutWindow) -> DriverPayoutResult:
        if self._stripe is None:
            raise ProcessorNotConfiguredError()

        driver = await self._repo.get_driver(driver_id)
        if driver is None:
            return self._skip(driver_id, REASON_NO_DRIVER)
        if not driver.is_driver:
            return self._skip(driver_id, REASON_NOT_DRIVER)
        if not driver.stripe_account_id:
            return self._skip(driver_id, REASON_NO_ACCOUNT)

        account = await self._stripe.retrieve_account(driver.stripe_account_id)
        if not getattr(account, "payouts_enabled", False):
            return self._skip(driver_id, REASON_PAYOUTS_DISABLED)

        available, total_net, rides_count = await self.calculate_available_balance(driver_id, window)
        await log_info(
            f"Водитель {driver_id}: поездок {rides_count}, net {total_net:.2f}, к выплате {available:.2f}",
            type_msg=TypeMsg.DEBUG,
        )

        if available <= 0:
            return DriverPayoutResult(
                driver_id=driver_id, success=True, skipped=True, amount=0.0, reason=REASON_NO_EARNINGS
            )
        if available < self._min_amount:
            return DriverPayoutResult(
                driver_id=driver_id, success=True, skipped=True, amount=0.0, reason=REASON_BELOW_MINIMUM
            )

        settlement = window_key(window, mode=self._window_mode, tz=self._tz)
        amount_cents = to_minor_units(available)
        description = f"Weekly payout for driver {driver_id}"
        metadata = {
            "driverId": str(driver_id),
            "type": WEEKLY_PAYOUT_TYPE,
            "period": window.label,
        }

        async with self._db.transaction() as conn:
            if not await self._repo.claim_settlement(conn, driver_id, settlement):
                await log_info(
                    f"Выплата водителю {driver_id} за окно {settlement} уже выполнена или выполняется",
                    type_msg=TypeMsg.WARNING,
                )
                return self._skip(driver_id, REASON_ALREADY_ISSUED)

            transfer = await self._stripe.create_transfer(
                amount=amount_cents,
                currency=self._currency,
                destination=driver.stripe_account_id,
                metadata=metadata,
                idempotency_key=f"weekly-transfer-{driver_id}-{settlement}",
            )
            record_data = PayoutCreate(
                driver_id=driver_id,
                transfer_id=transfer.id,
                amount=from_minor_units(amount_cents),
                currency=self._currency,
                payout_method=self._payout_method,
                description=description,
                settlement_window=settlement,
            )
            try:
                payout = await self._stripe.create_payout(
                    amount=amount_cents,
                    currency=self._currency,
                    metadata={**metadata, "transferId": transfer.id},
                    stripe_account=driver.stripe_account_id,
                    description=description,
                    method="instant" if self._payout_method is PayoutMethod.INSTANT else None,
                    idempotency_key=f"weekly-payout-{driver_id}-{settlement}",
                )
            except Exception as e:
                # Перевод уже на счёте водителя: окно закрывается записью failed
                error = str(e) or type(e).__name__
                record = await self._repo.create_payout(
                    conn,
                    record_data.model_copy(update={"status": PayoutStatus.FAILED, "failure_message": error}),
                )
            else:
                error = None
                record = await self._repo.create_payout(
                    conn,
                    record_data.model_copy(
                        update={
                            "stripe_payout_id": payout.id,
                            "status": map_payout_status(getattr(payout, "status", None)),
                            "arrival_date": _arrival(getattr(payout, "arrival_date", None)),
                        }
                    ),
                )

        if error is not None:
            return await self._payout_failed_after_transfer(driver_id, window, transfer.id, record.id, error)

        await log_info(
            f"Выплата водителю {driver_id}: {available:.2f} {self._currency} "
            f"(transfer {transfer.id}, payout {payout.id})",
            type_msg=TypeMsg.INFO,
        )
        await self._event_bus.publish(
            PayoutCreated(
                driver_id=driver_id,
                payout_record_id=record.id,
                stripe_payout_id=payout.id,
                transfer_id=transfer.id,
                amount=available,
                currency=self._currency,
                status=record.status.value,
                window_start=window.start,
                window_end=window.end,
            )
        )

        return DriverPayoutResult(
            driver_id=driver_id,
            success=True,
            amount=available,
            transfer_id=transfer.id,
            payout_id=payout.id,
            record_id=record.id,
        )

    async def _payout_failed_after_transfer(
        self,
        driver_id: int,
        window: PayoutWindow,
        transfer_id: str,
        record_id: int,
        error: str,
    ) -> DriverPayoutResult:
        await log_error(
            f"Перевод {transfer_id} водителю {driver_id} выполнен, но payout не создан: {error}",
            extra={"driver_id": driver_id, "transfer_id": transfer_id, "record_id": record_id},
        )
        await self._event_bus.publish(
            PayoutFailed(
                driver_id=driver_id,
                error_message=error,
                transfer_id=transfer_id,
                payout_record_id=record_id,
                window_start=window.start,
                window_end=window.end,
            )
        )
        return DriverPayoutResult(
            driver_id=driver_id,
            success=False,
            transfer_id=transfer_id,
            record_id=record_id,
            error=error,
        )

    @staticmethod
    def _skip(driver_id: int, reason: str) -> DriverPayoutResult:
        return DriverPayoutResult(driver_id=driver_id, success=False, skipped=True, reason=reason)

    # =========================================================================
    # ЗАПУСК ДЛЯ ВСЕХ ВОДИТЕЛЕЙ
    # =========================================================================

    async def run_weekly_payouts(self, now: datetime | None = None) -> PayoutRunReport:
        """
        Запускает выплаты всем водителям с подключённым аккаунтом.

        Args:
            now: Момент запуска (по умолчанию текущий)

        Returns:
            PayoutRunReport

        Raises:
            ProcessorNotConfiguredError: Stripe не настроен
            PayoutRunInProgressError: другой запуск держит блокировку
        """
        if self._stripe is None:
            raise ProcessorNotConfiguredError()

        window = self.current_window(now)
        token = uuid4().hex

        if self._redis is not None:
            if not await self._redis.acquire_lock(RUN_LOCK_NAME, token, self._run_lock_ttl):
                raise PayoutRunInProgressError()

        try:
            drivers = await self._repo.get_eligible_drivers()
            await log_info(
                f"Еженедельные выплаты: окно {window.label}, водителей {len(drivers)}",
                type_msg=TypeMsg.INFO,
            )

            semaphore = asyncio.Semaphore(self._max_concurrency)

            async def bounded(driver_id: int) -> DriverPayoutResult:
                async with semaphore:
                    return await self.process_driver(driver_id, window)

            results = await asyncio.gather(*(bounded(d.id) for d in drivers))
        finally:
            if self._redis is not None:
                await self._redis.release_lock(RUN_LOCK_NAME, token)

        report = self.build_report(window, list(results))
        await log_info(
            f"Выплаты завершены: успешно {report.successes}, пропущено {report.skipped}, "
            f"ошибок {report.failures}, сумма {report.total_amount:.2f}",
            type_msg=TypeMsg.INFO,
        )
        return report

    @staticmethod
    def build_report(window: PayoutWindow, results: list[DriverPayoutResult]) -> PayoutRunReport:
        """Агрегирует результаты по водителям."""
        successes = [r for r in results if r.success and not r.skipped]
        skipped = [r for r in results if r.skipped]
        failures = [r for r in results if not r.success and not r.skipped]
        return PayoutRunReport(
            window_start=window.start,
            window_end=window.end,
            total_processed=len(results),
            successes=len(successes),
            skipped=len(skipped),
            failures=len(failures),
            total_amount=round(sum(r.amount for r in successes), 2),
            results=results,
        )

    # =========================================================================
    # СТАТУСЫ И ИСТОРИЯ
    # =========================================================================

    async def update_payout_status(
        self,
        external_id: str,
        processor_status: str,
        failure_code: str | None = None,
        failure_message: str | None = None,
    ) -> int:
        """
        Обновляет статус выплаты по событию вебхука.

        Args:
            external_id: ID payout или transfer в Stripe
            processor_status: Статус Stripe (paid, failed, canceled, ...)

        Returns:
            Количество обновлённых записей
        """
        status = map_payout_status(processor_status)
        updated = await self._repo.update_payout_status(external_id, status, failure_code, failure_message)

        if updated == 0:
            await log_info(f"Выплата {external_id} не найдена для обновления статуса", type_msg=TypeMsg.WARNING)
        else:
            await log_info(f"Статус выплаты {external_id}: {status.value}", type_msg=TypeMsg.INFO)

        await self._event_bus.publish(
            PayoutStatusChanged(
                external_id=external_id,
                status=status.value,
                failure_code=failure_code,
                failure_message=failure_message,
                updated_count=updated,
            )
        )
        return updated

    async def get_payout_history(
        self,
        driver_id: int,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResponse[Payout]:
        """История выплат водителя, от новых к старым."""
        pagination = pagination or PaginationParams()
        items = await self._repo.list_payouts(driver_id, limit=pagination.page_size, offset=pagination.offset)
        total = await self._repo.count_payouts(driver_id)
        return PaginatedResponse[Payout].create(items=items, total=total, pagination=pagination)
