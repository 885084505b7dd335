# tests/infra/test_lifecycle.py
"""
Тесты подъёма и остановки инфраструктуры.
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.infra import lifecycle

_STEPS = ["init_db", "init_redis", "init_event_bus", "init_stripe", "close_db", "close_redis", "close_event_bus"]


@pytest.fixture
def steps() -> Iterator[dict[str, AsyncMock]]:
    mocks = {name: AsyncMock() for name in _STEPS}
    with patch.multiple(lifecycle, reset_stripe=MagicMock(), **mocks):
        yield mocks


@pytest.mark.asyncio
async def test_context_starts_and_stops(steps: dict[str, AsyncMock]) -> None:
    async with lifecycle.infrastructure():
        steps["init_db"].assert_awaited_once()
        steps["init_stripe"].assert_awaited_once()
        steps["close_db"].assert_not_awaited()

    steps["close_event_bus"].assert_awaited_once()
    steps["close_db"].assert_awaited_once()
    lifecycle.reset_stripe.assert_called_once()


@pytest.mark.asyncio
async def test_partial_start_still_closes(steps: dict[str, AsyncMock]) -> None:
    steps["init_redis"].side_effect = ConnectionRefusedError("redis down")

    with pytest.raises(ConnectionRefusedError):
        async with lifecycle.infrastructure():
            pass

    steps["init_event_bus"].assert_not_awaited()
    steps["close_db"].assert_awaited_once()


@pytest.mark.asyncio
async def test_close_error_does_not_skip_others(steps: dict[str, AsyncMock]) -> None:
    steps["close_event_bus"].side_effect = RuntimeError("channel closed")

    with patch.object(lifecycle, "log_error", AsyncMock()) as log_error:
        await lifecycle.stop_infrastructure()

    steps["close_redis"].assert_awaited_once()
    steps["close_db"].assert_awaited_once()
    assert "RabbitMQ" in log_error.await_args.args[0]
