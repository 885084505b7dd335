# src/core/payouts/schedule.py
"""
Окно расчёта выплат и триггер расписания.

Режимы окна:
- rolling: последние N дней до момента запуска [now - N дней, now]
- calendar: предыдущая полная неделя с понедельника 00:00 до понедельника 00:00
  в часовом поясе расписания

Триггер is_due() не хранит состояния: его вызывает внешний планировщик
(воркер или cron) и сам решает, как часто проверять.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

WINDOW_MODES = ("rolling", "calendar")


@dataclass(frozen=True)
class PayoutWindow:
    """Полуоткрытый интервал [start, end) расчёта выплат (UTC)."""
    start: datetime
    end: datetime

    def __contains__(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @property
    def label(self) -> str:
        """Период для описаний и metadata: YYYY-MM-DD..YYYY-MM-DD."""
        return f"{self.start.date().isoformat()}..{self.end.date().isoformat()}"


def _aware(now: datetime) -> datetime:
    return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)


def payout_window(
    now: datetime,
    days: int = 7,
    mode: str = "rolling",
    tz: str = "UTC",
) -> PayoutWindow:
    """
    Вычисляет окно выплат для момента запуска.

    Args:
        now: Момент запуска (naive считается UTC)
        days: Длина окна в днях (только для rolling)
        mode: rolling или calendar
        tz: Часовой пояс границ календарной недели

    Returns:
        PayoutWindow в UTC
    """
    if mode not in WINDOW_MODES:
        raise ValueError(f"Неизвестный режим окна выплат: {mode}")

    now = _aware(now)

    if mode == "rolling":
        return PayoutWindow(
            start=(now - timedelta(days=days)).astimezone(timezone.utc),
            end=now.astimezone(timezone.utc),
        )

    local_now = now.astimezone(ZoneInfo(tz))
    this_monday = (local_now - timedelta(days=local_now.weekday())).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    previous_monday = this_monday - timedelta(days=7)
    return PayoutWindow(
        start=previous_monday.astimezone(timezone.utc),
        end=this_monday.astimezone(timezone.utc),
    )


def is_due(now: datetime, weekday: int = 0, hour: int = 9, tz: str = "UTC") -> bool:
    """
    Пора ли запускать еженедельные выплаты.

    True в течение часа `hour` дня недели `weekday` (0 = понедельник)
    в часовом поясе `tz`.
    """
    local_now = _aware(now).astimezone(ZoneInfo(tz))
    return local_now.weekday() == weekday and local_now.hour == hour


def window_key(window: PayoutWindow, mode: str = "rolling", tz: str = "UTC") -> str:
    """
    Идентификатор окна расчёта для уникального ключа выплаты.

    Для календарного окна это дата его начала. Для скользящего окна
    это понедельник недели, в которую пришёлся запуск: два запуска
    в одну неделю получают один ключ.
    """
    if mode == "calendar":
        return window.start.astimezone(ZoneInfo(tz)).date().isoformat()

    local_end = window.end.astimezone(ZoneInfo(tz))
    week_start = local_end.date() - timedelta(days=local_end.weekday())
    return week_start.isoformat()
