# src/worker/payout_scheduler.py
"""
Воркер расписания еженедельных выплат.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

from src.common.constants import TypeMsg
from src.common.exceptions import PayoutRunInProgressError, ProcessorNotConfiguredError
from src.common.logger import log_error, log_info
from src.core.payouts.schedule import is_due, window_key
from src.core.payouts.service import WeeklyPayoutService
from src.shared.events.payout_events import PayoutFailed
from src.worker.base import BaseWorker


class PayoutSchedulerWorker(BaseWorker):
    """
    Раз в PAYOUT_CHECK_INTERVAL секунд проверяет расписание и запускает
    еженедельные выплаты один раз на окно.

    Повторный запуск за то же окно в другом процессе отсекается
    блокировкой в Redis и уникальностью выплаты в БД.
    """

    name = "PayoutSchedulerWorker"
    subscriptions = ("payout.failed",)

    def __init__(
        self,
        *args: Any,
        service: Optional[WeeklyPayoutService] = None,
        weekday: Optional[int] = None,
        hour: Optional[int] = None,
        tz: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        **kwargs: Any,
    ) -> None:
        from src.config import settings

        payouts = settings.payouts
        kwargs.setdefault("interval", payouts.PAYOUT_CHECK_INTERVAL)
        super().__init__(*args, **kwargs)

        if service is None:
            from src.infra.stripe_client import get_stripe_or_none
            service = WeeklyPayoutService.from_settings(
                db=self.db,
                redis=self.redis,
                event_bus=self.event_bus,
                stripe=get_stripe_or_none(),
            )

        self.service = service
        self.weekday = payouts.PAYOUT_SCHEDULE_WEEKDAY if weekday is None else weekday
        self.hour = payouts.PAYOUT_SCHEDULE_HOUR if hour is None else hour
        self.tz = tz or payouts.TIMEZONE
        self.window_mode = payouts.PAYOUT_WINDOW_MODE
        self._clock = clock
        self._fired: Set[str] = set()

    async def tick(self) -> None:
        now = self._clock()
        if not is_due(now, weekday=self.weekday, hour=self.hour, tz=self.tz):
            return

        key = window_key(self.service.current_window(now), mode=self.window_mode, tz=self.tz)
        if key in self._fired:
            return

        await log_info(f"Плановый запуск выплат за окно {key}", type_msg=TypeMsg.INFO)
        try:
            report = await self.service.run_weekly_payouts(now=now)
        except PayoutRunInProgressError:
            await log_info(f"Выплаты за окно {key} уже выполняются другим процессом", type_msg=TypeMsg.WARNING)
            self._fired.add(key)
            return
        except ProcessorNotConfiguredError as e:
            await log_error(f"Плановые выплаты невозможны: {e}")
            return

        self._fired.add(key)
        await log_info(
            f"Плановые выплаты за окно {key}: водителей {report.total_processed}, "
            f"ошибок {report.failures}",
            type_msg=TypeMsg.INFO,
        )

    async def handle_event(self, payload: Dict[str, Any]) -> None:
        event = PayoutFailed.from_payload(payload)
        await log_info(
            f"Выплата водителю {event.driver_id} за окно {event.window_start.date()}..{event.window_end.date()} "
            f"не удалась: {event.error_message}",
            type_msg=TypeMsg.WARNING,
        )
