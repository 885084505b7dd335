# src/worker/runner.py
"""
Процесс фоновых воркеров (сейчас только планировщик выплат).

    python -m src.worker.runner
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from typing import List

from src.common.constants import TypeMsg
from src.common.logger import log_info, setup_logging
from src.infra.lifecycle import infrastructure
from src.worker.base import BaseWorker
from src.worker.payout_scheduler import PayoutSchedulerWorker


def build_workers() -> List[BaseWorker]:
    return [PayoutSchedulerWorker()]


async def run_workers(init_infra: bool = True) -> None:
    """
    Запускает воркеры и держит их до отмены задачи.

    Args:
        init_infra: поднять инфраструктуру самостоятельно. main.py передаёт
                    False, когда подключения уже открыты.
    """
    async with AsyncExitStack() as stack:
        if init_infra:
            await stack.enter_async_context(infrastructure())

        workers = build_workers()
        for worker in workers:
            await worker.start()
            stack.push_async_callback(worker.stop)

        await log_info(f"Запущено воркеров: {len(workers)}", type_msg=TypeMsg.INFO)
        await asyncio.Event().wait()


def main() -> None:
    setup_logging()
    try:
        asyncio.run(run_workers())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
