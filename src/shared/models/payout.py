# src/shared/models/payout.py
"""
DTO выплат водителям.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.common.constants import PayoutMethod, PayoutStatus


class PayoutCreate(BaseModel):
    """Данные для записи новой выплаты."""

    driver_id: int
    stripe_payout_id: str | None = None
    transfer_id: str | None = None
    amount: float
    currency: str = "usd"
    status: PayoutStatus = PayoutStatus.PENDING
    payout_method: PayoutMethod = PayoutMethod.BANK_ACCOUNT
    description: str | None = None
    failure_message: str | None = None
    arrival_date: datetime | None = None
    settlement_window: str


class Payout(BaseModel):
    """Сохранённая выплата."""

    id: int
    driver_id: int
    stripe_payout_id: str | None = None
    transfer_id: str | None = None
    amount: float
    currency: str = "usd"
    status: PayoutStatus = PayoutStatus.PENDING
    payout_method: PayoutMethod = PayoutMethod.BANK_ACCOUNT
    description: str | None = None
    failure_code: str | None = None
    failure_message: str | None = None
    arrival_date: datetime | None = None
    settlement_window: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class DriverPayoutResult(BaseModel):
    """Результат обработки одного водителя в еженедельном запуске."""

    driver_id: int
    success: bool
    skipped: bool = False
    amount: float = 0.0
    transfer_id: str | None = None
    payout_id: str | None = None
    record_id: int | None = None
    error: str | None = None
    reason: str | None = None


class PayoutRunReport(BaseModel):
    """Итог еженедельного запуска выплат."""

    window_start: datetime
    window_end: datetime
    total_processed: int = 0
    successes: int = 0
    skipped: int = 0
    failures: int = 0
    total_amount: float = 0.0
    results: list[DriverPayoutResult] = Field(default_factory=list)


class DriverBalance(BaseModel):
    """Баланс водителя за текущее окно выплат."""

    driver_id: int
    weekly_net_earnings: float = 0.0
    pending_payouts: float = 0.0
    available_balance: float = 0.0
    currency: str = "usd"
    window_start: datetime
    window_end: datetime


class BankAccountInfo(BaseModel):
    id: str
    last4: str | None = None
    bank_name: str | None = None
    account_type: str | None = None
    status: str | None = None


class DriverAccountStatus(BaseModel):
    """Состояние подключённого аккаунта выплат водителя."""

    driver_id: int
    has_account: bool = False
    account_id: str | None = None
    # enabled, если данные аккаунта отправлены, иначе pending
    status: str | None = None
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    bank_account: BankAccountInfo | None = None
    requirements_due: list[str] = Field(default_factory=list)
