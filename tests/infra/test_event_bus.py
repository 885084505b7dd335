# tests/infra/test_event_bus.py
"""
Тесты для шины событий.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.infra.event_bus import EventBus, queue_name_for
from src.shared.events.payout_events import PayoutFailed


def _event() -> PayoutFailed:
    return PayoutFailed(
        driver_id=42,
        error_message="Account is restricted",
        window_start=datetime(2026, 10, 5, tzinfo=timezone.utc),
        window_end=datetime(2026, 10, 12, tzinfo=timezone.utc),
    )


@pytest.fixture
def event_bus() -> EventBus:
    """EventBus с моками соединения и exchange."""
    EventBus._instance = None
    bus = EventBus()
    bus._connection = MagicMock(is_closed=False)
    bus._channel = AsyncMock()
    bus._exchange = AsyncMock()
    return bus


class TestDomainEvents:
    """Тесты сериализации доменных событий."""

    def test_round_trip(self) -> None:
        event = _event()

        restored = PayoutFailed.from_json(event.to_json())

        assert restored == event
        assert restored.event_id == event.event_id

    def test_event_type_literal(self) -> None:
        assert _event().event_type == "payout.failed"
        assert _event().metadata.source_service == "payments"


class TestPublish:
    """Тесты публикации."""

    @pytest.mark.asyncio
    async def test_publish_routes_by_event_type(self, event_bus: EventBus) -> None:
        event = _event()

        assert await event_bus.publish(event) is True

        message = event_bus._exchange.publish.await_args.args[0]
        assert event_bus._exchange.publish.await_args.kwargs["routing_key"] == "payout.failed"
        assert json.loads(message.body)["driver_id"] == 42
        assert message.message_id == event.event_id

    @pytest.mark.asyncio
    async def test_publish_without_connection(self) -> None:
        """Без соединения событие не отправляется и ошибка не пробрасывается."""
        EventBus._instance = None
        bus = EventBus()

        assert await bus.publish(_event()) is False

    @pytest.mark.asyncio
    async def test_publish_error_swallowed(self, event_bus: EventBus) -> None:
        event_bus._exchange.publish.side_effect = ConnectionError("channel closed")

        assert await event_bus.publish(_event()) is False


class TestSubscribe:
    """Тесты подписки."""

    @pytest.mark.asyncio
    async def test_subscribe_binds_queue(self, event_bus: EventBus) -> None:
        queue = AsyncMock()
        event_bus._channel.declare_queue.return_value = queue
        handler = AsyncMock()

        await event_bus.subscribe("payout.failed", handler)

        event_bus._channel.declare_queue.assert_awaited_once_with("rideshare.payout_failed", durable=True)
        queue.bind.assert_awaited_once_with(event_bus._exchange, routing_key="payout.failed")
        queue.consume.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_consumer_decodes_payload(self, event_bus: EventBus) -> None:
        handler = AsyncMock()
        event_bus._handlers["payout.failed"] = [handler]
        consumer = event_bus._make_consumer("payout.failed")

        message = MagicMock()
        message.body = _event().to_json().encode()
        message.process.return_value.__aenter__ = AsyncMock(return_value=None)
        message.process.return_value.__aexit__ = AsyncMock(return_value=False)

        await consumer(message)

        payload = handler.await_args.args[0]
        assert payload["event_type"] == "payout.failed"
        assert payload["driver_id"] == 42

    @pytest.mark.asyncio
    async def test_subscribe_without_connection(self) -> None:
        EventBus._instance = None
        bus = EventBus()

        await bus.subscribe("payout.failed", AsyncMock())

        assert bus._handlers == {}

    @pytest.mark.parametrize(
        "event_type, queue",
        [("payout.failed", "rideshare.payout_failed"), ("payout.*", "rideshare.payout_all")],
    )
    def test_queue_name(self, event_type: str, queue: str) -> None:
        assert queue_name_for(event_type) == queue
