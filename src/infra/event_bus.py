# src/infra/event_bus.py
"""
Шина доменных событий на RabbitMQ (topic exchange, routing_key = event_type).

Публикация не бросает исключений: событие вторично по отношению
к операции выплаты или платежа, которая его породила.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import aio_pika
from aio_pika import ExchangeType, Message
from aio_pika.abc import (
    AbstractChannel,
    AbstractExchange,
    AbstractIncomingMessage,
    AbstractQueue,
    AbstractRobustConnection,
)

from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg
from src.shared.events.base import DomainEvent

# Обработчик получает декодированный JSON события
EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


def queue_name_for(event_type: str) -> str:
    """payout.* -> rideshare.payout_all"""
    safe = event_type.replace(".", "_").replace("*", "all").replace("#", "any")
    return f"rideshare.{safe}"


class EventBus:
    """Публикация и подписка на события (Singleton)."""

    _instance: EventBus | None = None

    def __new__(cls) -> EventBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractChannel | None = None
        self._exchange: AbstractExchange | None = None
        self._handlers: dict[str, list[EventHandler]] = {}
        self._queues: dict[str, AbstractQueue] = {}

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self, url: str, exchange_name: str, prefetch_count: int = 10) -> None:
        """
        Открывает robust-соединение и объявляет durable exchange.

        Args:
            url: URL RabbitMQ
            exchange_name: Имя topic exchange
            prefetch_count: Сообщений на consumer без подтверждения
        """
        if self.is_connected:
            return

        await log_info("Подключение к RabbitMQ...", type_msg=TypeMsg.INFO)

        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=prefetch_count)
        self._exchange = await self._channel.declare_exchange(exchange_name, ExchangeType.TOPIC, durable=True)

    async def disconnect(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        self._channel = None
        self._exchange = None
        self._queues.clear()
        await log_info("Соединение с RabbitMQ закрыто", type_msg=TypeMsg.INFO)

    async def publish(self, event: DomainEvent) -> bool:
        """
        Публикует событие.

        Returns:
            True если событие отправлено
        """
        if not self.is_connected or self._exchange is None:
            await log_error(f"Не удалось опубликовать {event.event_type}: нет соединения с RabbitMQ")
            return False

        message = Message(
            body=event.to_json().encode(),
            content_type="application/json",
            message_id=event.event_id,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            await self._exchange.publish(message, routing_key=event.event_type)
        except Exception as e:
            await log_error(f"Ошибка публикации события {event.event_type}: {e}")
            return False

        await log_info(f"Событие опубликовано: {event.event_type}", type_msg=TypeMsg.DEBUG)
        return True

    async def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Подписывает обработчик на события (event_type может быть шаблоном "payout.*").

        Очередь durable, одна на шаблон; повторные подписки добавляют обработчики.
        """
        if not self.is_connected or self._channel is None or self._exchange is None:
            await log_error(f"Не удалось подписаться на {event_type}: нет соединения с RabbitMQ")
            return

        self._handlers.setdefault(event_type, []).append(handler)

        name = queue_name_for(event_type)
        if name in self._queues:
            return

        queue = await self._channel.declare_queue(name, durable=True)
        await queue.bind(self._exchange, routing_key=event_type)
        await queue.consume(self._make_consumer(event_type))
        self._queues[name] = queue

    def _make_consumer(self, event_type: str) -> Callable[[AbstractIncomingMessage], Awaitable[None]]:
        async def consumer(message: AbstractIncomingMessage) -> None:
            async with message.process():
                try:
                    payload = json.loads(message.body.decode())
                except (UnicodeDecodeError, json.JSONDecodeError) as e:
                    await log_error(f"Некорректное сообщение в очереди {event_type}: {e}")
                    return

                for handler in self._handlers.get(event_type, []):
                    try:
                        await handler(payload)
                    except Exception as e:
                        await log_error(
                            f"Ошибка в обработчике события {event_type}: {e}",
                            exc_info=True,
                        )

        return consumer

    async def health_check(self) -> bool:
        return self.is_connected


def get_event_bus() -> EventBus:
    """Возвращает глобальный экземпляр EventBus."""
    return EventBus()


async def init_event_bus() -> None:
    """Подключает RabbitMQ с настройками из конфигурации."""
    from src.config import settings

    await get_event_bus().connect(
        url=settings.rabbitmq.url,
        exchange_name=settings.rabbitmq.RABBITMQ_EXCHANGE,
        prefetch_count=settings.rabbitmq.RABBITMQ_PREFETCH_COUNT,
    )
    await log_info(
        f"RabbitMQ подключён: {settings.rabbitmq.RABBITMQ_HOST}:{settings.rabbitmq.RABBITMQ_PORT}",
        type_msg=TypeMsg.INFO,
    )


async def close_event_bus() -> None:
    await get_event_bus().disconnect()
