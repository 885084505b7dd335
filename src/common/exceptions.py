# src/common/exceptions.py
"""
Исключения домена платежей и выплат.

Условия неприменимости (нет аккаунта выплат, выплаты отключены, нечего
выплачивать) исключениями не являются: они возвращаются как пропущенный
результат.
"""

from __future__ import annotations


class PaymentsError(Exception):
    """Базовая ошибка сервиса платежей."""


class ProcessorNotConfiguredError(PaymentsError):
    """Платёжный процессор не настроен (нет или неверный секретный ключ)."""

    def __init__(self, message: str = "Stripe is not configured") -> None:
        super().__init__(message)


class PaymentOperationError(PaymentsError):
    """Операция над платежом завершилась ошибкой процессора."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(message)
        self.operation = operation
        self.message = message


class InvalidPaymentStateError(PaymentOperationError):
    """PaymentIntent находится в статусе, не допускающем операцию."""

    def __init__(self, operation: str, status: str, message: str | None = None) -> None:
        super().__init__(
            operation,
            message or f"Payment intent is in {status} status and cannot be {operation}d",
        )
        self.status = status


class BookingNotFoundError(PaymentsError):
    """Бронирование не найдено."""

    def __init__(self, booking_id: int) -> None:
        super().__init__("Booking not found")
        self.booking_id = booking_id


class PaymentIntentNotFoundError(PaymentsError):
    """У бронирования нет PaymentIntent, либо процессор его не знает."""


class PayoutRunInProgressError(PaymentsError):
    """Другой запуск еженедельных выплат уже выполняется."""

    def __init__(self) -> None:
        super().__init__("Weekly payout run is already in progress")


class DriverNotFoundError(PaymentsError):
    """Пользователь не найден или не является водителем."""

    def __init__(self, driver_id: int) -> None:
        super().__init__("Driver not found")
        self.driver_id = driver_id
