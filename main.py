#!/usr/bin/env python3
# main.py
"""
Точка входа сервиса выплат водителям.

    python main.py [payments_service | payout_scheduler | all]

Без аргумента режим берётся из COMPONENT_MODE.
Разовый запуск выплат из cron: python weekly_payouts.py
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Awaitable, Callable, Dict

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info, setup_logging
from src.config import settings
from src.infra.lifecycle import infrastructure


async def run_payments_service() -> None:
    """HTTP API; инфраструктуру поднимает lifespan приложения."""
    import uvicorn

    deployment = settings.deployment
    await log_info(
        f"Payments Service слушает {deployment.PAYMENTS_SERVICE_HOST}:{deployment.PAYMENTS_SERVICE_PORT}",
        type_msg=TypeMsg.INFO,
    )
    server = uvicorn.Server(
        uvicorn.Config(
            "src.services.payments.app:app",
            host=deployment.PAYMENTS_SERVICE_HOST,
            port=deployment.PAYMENTS_SERVICE_PORT,
            log_level="debug" if settings.system.DEBUG else "info",
        )
    )
    await server.serve()


async def run_payout_scheduler() -> None:
    from src.worker.runner import run_workers

    async with infrastructure():
        await run_workers(init_infra=False)


async def run_all() -> None:
    """API и планировщик в одном процессе; падение одного останавливает оба."""
    from src.worker.runner import run_workers

    async with infrastructure():
        async with asyncio.TaskGroup() as group:
            group.create_task(run_payments_service())
            group.create_task(run_workers(init_infra=False))


MODES: Dict[str, Callable[[], Awaitable[None]]] = {
    "payments_service": run_payments_service,
    "payout_scheduler": run_payout_scheduler,
    "all": run_all,
}


_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _install_signal_handlers(task: asyncio.Task) -> bool:
    loop = asyncio.get_running_loop()
    try:
        for sig in _SIGNALS:
            loop.add_signal_handler(sig, task.cancel)
    except NotImplementedError:
        # Windows: остаётся KeyboardInterrupt
        return False
    return True


def _remove_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for sig in _SIGNALS:
        loop.remove_signal_handler(sig)


async def main(mode: str | None = None) -> int:
    setup_logging()

    mode = mode or settings.system.COMPONENT_MODE
    runner = MODES.get(mode)
    if runner is None:
        await log_error(f"Неизвестный режим запуска: {mode}")
        return 2

    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION}: режим '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    task = asyncio.create_task(runner(), name=mode)
    handlers = _install_signal_handlers(task)
    try:
        await task
    except asyncio.CancelledError:
        await log_info("Получен сигнал остановки", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка в режиме '{mode}': {e}", exc_info=True)
        return 1
    finally:
        if handlers:
            _remove_signal_handlers()

    await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)
    return 0


USAGE = f"""Использование: python main.py [{' | '.join(MODES)}]

  payments_service   HTTP API (заработок, выплаты, платежи)
  payout_scheduler   планировщик еженедельных выплат
  all                оба компонента в одном процессе
"""


if __name__ == "__main__":
    args = sys.argv[1:]
    if args and args[0] in ("-h", "--help"):
        print(USAGE)
        sys.exit(0)
    if args and args[0] not in MODES:
        print(f"Неизвестный режим: {args[0]}\n\n{USAGE}", file=sys.stderr)
        sys.exit(2)

    try:
        sys.exit(asyncio.run(main(args[0] if args else None)))
    except KeyboardInterrupt:
        sys.exit(0)
