# tests/test_weekly_payouts.py
"""
Тесты для скрипта еженедельных выплат.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import weekly_payouts
from src.shared.models.payout import DriverPayoutResult, PayoutRunReport


def _report() -> PayoutRunReport:
    return PayoutRunReport(
        window_start=datetime(2026, 10, 5, tzinfo=timezone.utc),
        window_end=datetime(2026, 10, 12, tzinfo=timezone.utc),
        total_processed=3,
        successes=1,
        skipped=1,
        failures=1,
        total_amount=94.8,
        results=[
            DriverPayoutResult(driver_id=1, success=True, amount=94.8, payout_id="po_1"),
            DriverPayoutResult(driver_id=2, success=True, skipped=True, reason="No earnings available for payout"),
            DriverPayoutResult(driver_id=3, success=False, error="Account is restricted"),
        ],
    )


@pytest.fixture
def infra() -> Iterator[dict[str, AsyncMock]]:
    """Подменяет подъём и остановку инфраструктуры."""
    mocks = {"start_infrastructure": AsyncMock(), "stop_infrastructure": AsyncMock()}
    with patch.multiple("src.infra.lifecycle", **mocks), patch.multiple(
        weekly_payouts,
        get_db=MagicMock(),
        get_redis=MagicMock(),
        get_event_bus=MagicMock(),
        get_stripe_or_none=MagicMock(),
    ):
        yield mocks


class TestFormatReport:
    """Тесты текста отчёта."""

    def test_summary_lines(self) -> None:
        text = "\n".join(weekly_payouts.format_report(_report()))

        assert "Total drivers processed: 3" in text
        assert "Successful payouts: 1" in text
        assert "Skipped: 1" in text
        assert "Failed payouts: 1" in text
        assert "Total amount: $94.80" in text

    def test_driver_lines(self) -> None:
        lines = weekly_payouts.format_report(_report())

        assert "   ✅ Driver 1: $94.80" in lines
        assert "   ⏭  Driver 2: $0.00 - No earnings available for payout" in lines
        assert "   ❌ Driver 3: $0.00 - Account is restricted" in lines

    def test_no_results_section_when_empty(self) -> None:
        report = PayoutRunReport(
            window_start=datetime(2026, 10, 5, tzinfo=timezone.utc),
            window_end=datetime(2026, 10, 12, tzinfo=timezone.utc),
        )

        assert "📋 Detailed Results:" not in weekly_payouts.format_report(report)


class TestRun:
    """Тесты запуска скрипта."""

    @pytest.mark.asyncio
    async def test_success(self, infra: dict[str, AsyncMock], capsys: pytest.CaptureFixture[str]) -> None:
        service = MagicMock()
        service.run_weekly_payouts = AsyncMock(return_value=_report())
        now = datetime(2026, 10, 12, 9, 0, tzinfo=timezone.utc)

        with patch.object(weekly_payouts.WeeklyPayoutService, "from_settings", return_value=service):
            code = await weekly_payouts.run(now)

        assert code == 0
        service.run_weekly_payouts.assert_awaited_once_with(now=now)
        assert "Weekly payout processing completed" in capsys.readouterr().out
        infra["stop_infrastructure"].assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_exits_nonzero(self, infra: dict[str, AsyncMock], capsys: pytest.CaptureFixture[str]) -> None:
        """Падение запуска даёт код 1, инфраструктура всё равно закрывается."""
        infra["start_infrastructure"].side_effect = ConnectionRefusedError("db down")

        code = await weekly_payouts.run()

        assert code == 1
        assert "db down" in capsys.readouterr().err
        infra["stop_infrastructure"].assert_awaited_once()


class TestMain:
    """Тесты разбора аргументов."""

    def test_parses_now(self) -> None:
        with patch.object(weekly_payouts, "setup_logging"), patch.object(
            weekly_payouts, "run", AsyncMock(return_value=0)
        ) as run:
            code = weekly_payouts.main(["2026-10-12T09:00:00+00:00"])

        assert code == 0
        run.assert_awaited_once_with(datetime(2026, 10, 12, 9, 0, tzinfo=timezone.utc))

    def test_invalid_moment_prints_usage(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch.object(weekly_payouts, "setup_logging") as setup, patch.object(
            weekly_payouts, "run", AsyncMock(return_value=0)
        ) as run:
            code = weekly_payouts.main(["next-monday"])

        assert code == 1
        err = capsys.readouterr().err
        assert "next-monday" in err
        assert "Использование" in err
        run.assert_not_called()
        setup.assert_not_called()
