# tests/infra/test_redis_client.py
"""
Тесты для клиента Redis.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.infra.redis_client import RedisClient


@pytest.fixture
def redis_client() -> RedisClient:
    """RedisClient с моком соединения."""
    # Сбрасываем синглтон для каждого теста
    RedisClient._instance = None
    client = RedisClient()
    client._client = AsyncMock()
    return client


class TestRedisClient:
    """Тесты RedisClient."""

    def test_singleton(self) -> None:
        RedisClient._instance = None

        assert RedisClient() is RedisClient()

    def test_client_not_initialized(self) -> None:
        RedisClient._instance = None

        with pytest.raises(RuntimeError):
            _ = RedisClient().client

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, redis_client: RedisClient) -> None:
        existing = redis_client._client

        await redis_client.connect("redis://localhost:6379/0")

        assert redis_client._client is existing

    @pytest.mark.asyncio
    async def test_health_check_failure(self, redis_client: RedisClient) -> None:
        redis_client.client.ping.side_effect = RedisConnectionError("refused")

        assert await redis_client.health_check() is False


class TestRedisLocks:
    """Тесты блокировок SET NX EX."""

    @pytest.mark.asyncio
    async def test_acquire_lock(self, redis_client: RedisClient) -> None:
        redis_client.client.set.return_value = True

        assert await redis_client.acquire_lock("weekly_payouts:run", "token-1", 600) is True
        redis_client.client.set.assert_awaited_once_with(
            "rideshare:lock:weekly_payouts:run", "token-1", nx=True, ex=600
        )

    @pytest.mark.asyncio
    async def test_acquire_busy_lock(self, redis_client: RedisClient) -> None:
        """SET NX возвращает None, если ключ уже есть."""
        redis_client.client.set.return_value = None

        assert await redis_client.acquire_lock("weekly_payouts:run", "token-2", 600) is False

    @pytest.mark.asyncio
    async def test_namespace_applied(self, redis_client: RedisClient) -> None:
        redis_client._namespace = "rideshare_test"

        await redis_client.acquire_lock("weekly_payouts:run", "token-1", 600)

        assert redis_client.client.set.await_args.args[0] == "rideshare_test:lock:weekly_payouts:run"

    @pytest.mark.asyncio
    async def test_release_checks_owner(self, redis_client: RedisClient) -> None:
        """Освобождение идёт через скрипт сравнения токена."""
        redis_client.client.eval.return_value = 0

        released = await redis_client.release_lock("weekly_payouts:run", "foreign-token")

        assert released is False
        script, numkeys, key, token = redis_client.client.eval.await_args.args
        assert "get" in script and "del" in script
        assert numkeys == 1
        assert key == "rideshare:lock:weekly_payouts:run"
        assert token == "foreign-token"

    @pytest.mark.asyncio
    async def test_release_own_lock(self, redis_client: RedisClient) -> None:
        redis_client.client.eval.return_value = 1

        assert await redis_client.release_lock("weekly_payouts:run", "token-1") is True
