# src/infra/redis_client.py
"""
Клиент Redis для распределённых блокировок.

Блокировка запуска выплат держится одним процессом: SET NX EX с токеном
владельца, снятие только по совпадению токена.
"""

from __future__ import annotations

import redis.asyncio as redis

from src.common.logger import log_info, log_warning
from src.common.constants import TypeMsg

# Удаляет ключ, только если он принадлежит владельцу токена
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisClient:
    """Асинхронный клиент Redis (Singleton)."""

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = "rideshare"

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    def _lock_key(self, name: str) -> str:
        return f"{self._namespace}:lock:{name}"

    async def connect(self, url: str, max_connections: int = 50, namespace: str | None = None) -> None:
        """
        Подключается к Redis и проверяет соединение.

        Args:
            url: URL Redis
            max_connections: Размер пула соединений
            namespace: Префикс ключей
        """
        if self._client is not None:
            return

        if namespace:
            self._namespace = namespace

        await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)
        self._client = redis.from_url(url, max_connections=max_connections, decode_responses=True)
        await self._client.ping()

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    # =========================================================================
    # БЛОКИРОВКИ
    # =========================================================================

    async def acquire_lock(self, name: str, token: str, ttl: int) -> bool:
        """
        Берёт блокировку, если она свободна.

        Args:
            name: Имя блокировки (без namespace)
            token: Уникальный токен владельца
            ttl: Время жизни блокировки в секундах

        Returns:
            True если блокировка получена
        """
        acquired = await self.client.set(self._lock_key(name), token, nx=True, ex=ttl)
        return bool(acquired)

    async def release_lock(self, name: str, token: str) -> bool:
        """Снимает блокировку, если она всё ещё принадлежит token."""
        released = await self.client.eval(_RELEASE_LOCK_SCRIPT, 1, self._lock_key(name), token)
        return bool(released)

    async def health_check(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_warning(f"Redis не отвечает: {e}")
            return False


def get_redis() -> RedisClient:
    """Возвращает глобальный экземпляр RedisClient."""
    return RedisClient()


async def init_redis() -> None:
    """Подключает Redis с настройками из конфигурации."""
    from src.config import settings

    await get_redis().connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
        namespace=settings.redis.REDIS_NAMESPACE,
    )
    await log_info(
        f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}/{settings.redis.REDIS_DB}",
        type_msg=TypeMsg.INFO,
    )


async def close_redis() -> None:
    await get_redis().disconnect()
