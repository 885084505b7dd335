# src/worker/base.py
"""
Базовый класс фоновых воркеров.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.infra.database import DatabaseManager, get_db
from src.infra.event_bus import EventBus, get_event_bus
from src.infra.redis_client import RedisClient, get_redis


class BaseWorker(ABC):
    """
    Периодический воркер с подпиской на события.

    tick() вызывается сразу после start() и далее раз в `interval` секунд.
    События типов из `subscriptions` приходят в handle_event() уже
    декодированными. Ошибки tick() и обработчиков логируются и не
    останавливают воркер.

    stop() дожидается текущего tick(): начатый запуск выплат не обрывается.
    """

    name: str = "worker"
    subscriptions: Tuple[str, ...] = ()

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        db: Optional[DatabaseManager] = None,
        redis: Optional[RedisClient] = None,
        interval: float = 60.0,
    ) -> None:
        self.event_bus = event_bus or get_event_bus()
        self.db = db or get_db()
        self.redis = redis or get_redis()
        self.interval = interval
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @abstractmethod
    async def tick(self) -> None:
        """Одна итерация периодической работы."""

    async def handle_event(self, payload: Dict[str, Any]) -> None:
        """Обработчик событий из подписок; по умолчанию ничего не делает."""

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return

        self._stop.clear()
        for event_type in self.subscriptions:
            await self.event_bus.subscribe(event_type, self._on_event)

        self._task = asyncio.create_task(self._run(), name=f"{self.name}-loop")
        await log_info(
            f"Воркер {self.name} запущен (интервал {self.interval}с, подписки: {list(self.subscriptions) or '-'})",
            type_msg=TypeMsg.INFO,
        )

    async def stop(self) -> None:
        if not self.is_running:
            return

        self._stop.set()
        await self._task
        self._task = None
        await log_info(f"Воркер {self.name} остановлен", type_msg=TypeMsg.INFO)

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception as e:
                await log_error(f"Ошибка в воркере {self.name}: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    async def _on_event(self, payload: Dict[str, Any]) -> None:
        if not self.is_running:
            return

        event_type = payload.get("event_type")
        try:
            await self.handle_event(payload)
        except Exception as e:
            await log_error(f"Воркер {self.name}: ошибка обработки {event_type}: {e}", extra={"event_type": event_type})
