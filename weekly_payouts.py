#!/usr/bin/env python3
# weekly_payouts.py
"""
Разовый запуск еженедельных выплат всем водителям.

Запускать раз в неделю (например, по понедельникам) из cron:
    python weekly_payouts.py
    python weekly_payouts.py 2026-10-12T09:00:00+00:00   # пересчитать окно на момент
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone

from src.common.logger import setup_logging, log_error
from src.core.payouts.service import WeeklyPayoutService
from src.infra.database import get_db
from src.infra.event_bus import get_event_bus
from src.infra.lifecycle import infrastructure
from src.infra.redis_client import get_redis
from src.infra.stripe_client import get_stripe_or_none
from src.shared.models.payout import PayoutRunReport


def format_report(report: PayoutRunReport) -> list[str]:
    """Строки итогового отчёта для вывода в консоль."""
    lines = [
        "",
        "✅ Weekly payout processing completed!",
        f"🗓  Window: {report.window_start.isoformat()} .. {report.window_end.isoformat()}",
        "📊 Summary:",
        f"   - Total drivers processed: {report.total_processed}",
        f"   - Successful payouts: {report.successes}",
        f"   - Skipped: {report.skipped}",
        f"   - Failed payouts: {report.failures}",
        f"   - Total amount: ${report.total_amount:.2f}",
    ]

    if report.results:
        lines.append("")
        lines.append("📋 Detailed Results:")
        for r in report.results:
            if r.skipped:
                status = "⏭ "
            else:
                status = "✅" if r.success else "❌"
            note = r.error or r.reason
            lines.append(f"   {status} Driver {r.driver_id}: ${r.amount:.2f}{f' - {note}' if note else ''}")

    return lines


async def run(now: datetime | None = None) -> int:
    """
    Выполняет выплаты за окно на момент `now` и печатает отчёт.

    Returns:
        0, если запуск завершился (даже с ошибками отдельных водителей),
        1, если упал сам запуск.
    """
    print("🚀 Starting weekly payout processing...")
    print(f"📅 Date: {(now or datetime.now(timezone.utc)).isoformat()}")

    try:
        async with infrastructure():
            service = WeeklyPayoutService.from_settings(
                db=get_db(),
                redis=get_redis(),
                event_bus=get_event_bus(),
                stripe=get_stripe_or_none(),
            )
            report = await service.run_weekly_payouts(now=now)
    except Exception as e:
        await log_error(f"Ошибка еженедельных выплат: {e}", exc_info=True)
        print(f"\n❌ Error processing weekly payouts: {e}", file=sys.stderr)
        return 1

    print("\n".join(format_report(report)))
    return 0


USAGE = "Использование: python weekly_payouts.py [ISO-момент, например 2026-10-12T09:00:00+00:00]"


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        now = datetime.fromisoformat(argv[0]) if argv else None
    except ValueError:
        print(f"Некорректный момент запуска: {argv[0]!r}\n{USAGE}", file=sys.stderr)
        return 1

    setup_logging()
    return asyncio.run(run(now))


if __name__ == "__main__":
    sys.exit(main())
