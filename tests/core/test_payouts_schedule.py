# tests/core/test_payouts_schedule.py
"""
Тесты для окна выплат и триггера расписания.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.core.payouts.schedule import PayoutWindow, is_due, payout_window, window_key


class TestPayoutWindow:
    """Тесты вычисления окна выплат."""

    def test_rolling_window(self, fixed_now: datetime) -> None:
        """Скользящее окно: последние 7 дней до запуска."""
        window = payout_window(fixed_now)

        assert window.end == fixed_now
        assert window.start == fixed_now - timedelta(days=7)

    def test_naive_now_treated_as_utc(self) -> None:
        window = payout_window(datetime(2026, 10, 12, 9, 0))
        assert window.end.tzinfo is not None

    def test_calendar_window(self, fixed_now: datetime) -> None:
        """Календарное окно: предыдущая неделя с понедельника по понедельник."""
        window = payout_window(fixed_now, mode="calendar")

        assert window.start == datetime(2026, 10, 5, tzinfo=timezone.utc)
        assert window.end == datetime(2026, 10, 12, tzinfo=timezone.utc)

    def test_calendar_window_in_timezone(self) -> None:
        """Границы недели считаются в часовом поясе расписания."""
        now = datetime(2026, 10, 12, 9, 0, tzinfo=timezone.utc)
        window = payout_window(now, mode="calendar", tz="Europe/Berlin")

        # Полночь по Берлину (UTC+2 летом) = 22:00 UTC предыдущего дня
        assert window.end == datetime(2026, 10, 11, 22, 0, tzinfo=timezone.utc)

    def test_unknown_mode(self, fixed_now: datetime) -> None:
        with pytest.raises(ValueError):
            payout_window(fixed_now, mode="monthly")

    def test_contains_is_half_open(self) -> None:
        start = datetime(2026, 10, 5, tzinfo=timezone.utc)
        end = datetime(2026, 10, 12, tzinfo=timezone.utc)
        window = PayoutWindow(start=start, end=end)

        assert start in window
        assert end not in window

    def test_label(self, fixed_now: datetime) -> None:
        assert payout_window(fixed_now, mode="calendar").label == "2026-10-05..2026-10-12"


class TestIsDue:
    """Тесты триггера расписания."""

    def test_due_on_monday_at_hour(self, fixed_now: datetime) -> None:
        assert is_due(fixed_now, weekday=0, hour=9) is True

    def test_not_due_other_hour(self, fixed_now: datetime) -> None:
        assert is_due(fixed_now.replace(hour=10), weekday=0, hour=9) is False

    def test_not_due_other_day(self, fixed_now: datetime) -> None:
        assert is_due(fixed_now + timedelta(days=1), weekday=0, hour=9) is False

    def test_timezone_applied(self) -> None:
        """09:30 по Берлину = 07:30 UTC."""
        now = datetime(2026, 10, 12, 7, 30, tzinfo=timezone.utc)
        assert is_due(now, weekday=0, hour=9, tz="Europe/Berlin") is True
        assert is_due(now, weekday=0, hour=9, tz="UTC") is False


class TestWindowKey:
    """Тесты ключа окна для уникальности выплаты."""

    def test_rolling_runs_in_same_week_share_key(self, fixed_now: datetime) -> None:
        """Два запуска в одну неделю получают один ключ."""
        first = window_key(payout_window(fixed_now))
        second = window_key(payout_window(fixed_now + timedelta(days=3)))

        assert first == second == "2026-10-12"

    def test_rolling_next_week_differs(self, fixed_now: datetime) -> None:
        assert window_key(payout_window(fixed_now + timedelta(days=7))) == "2026-10-19"

    def test_calendar_key_is_start_date(self, fixed_now: datetime) -> None:
        window = payout_window(fixed_now, mode="calendar")
        assert window_key(window, mode="calendar") == "2026-10-05"
