# src/infra/database.py
"""
PostgreSQL: пул соединений asyncpg, повтор запросов при обрыве связи,
транзакции и advisory-блокировки для защиты от двойной выплаты.
"""

from __future__ import annotations

import asyncio
import zlib
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, AsyncGenerator, Awaitable, Callable

import asyncpg
from asyncpg import Connection, Pool, Record

from src.common.logger import log_error, log_info, log_warning
from src.common.constants import TypeMsg

# Ключ блокировки на время применения схемы
SCHEMA_LOCK_KEY = 723_400_001

# Обрыв связи, а не ошибка SQL
_CONNECTION_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    ConnectionRefusedError,
    OSError,
)


def _retry_policy() -> tuple[int, float]:
    from src.config import settings

    return settings.database.DB_RETRY_ATTEMPTS, settings.database.DB_RETRY_DELAY


def retry_on_connection_error(
    max_attempts: int | None = None,
    delay: float | None = None,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """
    Повторяет корутину при ошибках подключения с линейно растущей паузой.

    Ошибки SQL (нарушение ограничений и т.п.) пробрасываются сразу.

    Args:
        max_attempts: Количество попыток (None = DB_RETRY_ATTEMPTS)
        delay: Базовая пауза в секундах (None = DB_RETRY_DELAY)
    """
    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempts, pause = max_attempts, delay
            if attempts is None or pause is None:
                configured_attempts, configured_delay = _retry_policy()
                attempts = configured_attempts if attempts is None else attempts
                pause = configured_delay if pause is None else pause
            attempts = max(1, attempts)

            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except _CONNECTION_ERRORS as e:
                    if attempt == attempts:
                        await log_error(f"БД недоступна после {attempts} попыток: {e}")
                        raise
                    await log_warning(f"Ошибка подключения к БД (попытка {attempt}/{attempts}): {e}")
                    await asyncio.sleep(pause * attempt)

        return wrapper

    return decorator


def advisory_key(*parts: Any) -> int:
    """
    Ключ advisory-блокировки (знаковый bigint) из частей.

    Example:
        advisory_key("payout", driver_id, "2026-10-12")
    """
    raw = ":".join(str(p) for p in parts).encode()
    value = (zlib.crc32(raw) << 32) | zlib.crc32(raw[::-1])
    return value - (1 << 64) if value >= (1 << 63) else value


async def try_advisory_xact_lock(conn: Connection, key: int) -> bool:
    """
    Берёт транзакционную advisory-блокировку без ожидания.

    Снимается при commit/rollback, поэтому вызывать внутри транзакции.
    """
    return bool(await conn.fetchval("SELECT pg_try_advisory_xact_lock($1)", key))


class DatabaseManager:
    """Пул соединений PostgreSQL (Singleton)."""

    _instance: DatabaseManager | None = None
    _pool: Pool | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def pool(self) -> Pool:
        if self._pool is None:
            raise RuntimeError("PostgreSQL не подключён: вызовите init_db()")
        return self._pool

    @retry_on_connection_error()
    async def connect(self, dsn: str, min_size: int = 5, max_size: int = 20, command_timeout: int = 60) -> None:
        """Создаёт пул соединений (повторный вызов ничего не делает)."""
        if self._pool is not None:
            return

        await log_info("Подключение к PostgreSQL...", type_msg=TypeMsg.INFO)
        self._pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )

    async def disconnect(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            await log_info("Соединение с PostgreSQL закрыто", type_msg=TypeMsg.INFO)

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[Connection, None]:
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Connection, None]:
        """
        Соединение внутри транзакции: commit при выходе, rollback при ошибке.

        Example:
            async with db.transaction() as conn:
                if await try_advisory_xact_lock(conn, key):
                    await conn.execute("INSERT INTO payouts ...")
        """
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                yield connection

    async def _query(self, method: str, query: str, args: tuple[Any, ...]) -> Any:
        async with self.acquire() as conn:
            return await getattr(conn, method)(query, *args)

    @retry_on_connection_error()
    async def execute(self, query: str, *args: Any) -> str:
        """Статус команды, например "UPDATE 2"."""
        return await self._query("execute", query, args)

    @retry_on_connection_error()
    async def fetch(self, query: str, *args: Any) -> list[Record]:
        return await self._query("fetch", query, args)

    @retry_on_connection_error()
    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        return await self._query("fetchrow", query, args)

    @retry_on_connection_error()
    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self._query("fetchval", query, args)

    async def health_check(self) -> bool:
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            await log_warning(f"PostgreSQL не отвечает: {e}")
            return False


def get_db() -> DatabaseManager:
    """Возвращает глобальный экземпляр DatabaseManager."""
    return DatabaseManager()


async def init_db() -> None:
    """Подключает PostgreSQL с настройками из конфигурации и применяет схему."""
    from src.config import settings

    db = get_db()
    await db.connect(
        dsn=settings.database.dsn,
        min_size=settings.database.DB_MIN_POOL_SIZE,
        max_size=settings.database.DB_MAX_POOL_SIZE,
        command_timeout=settings.database.DB_COMMAND_TIMEOUT,
    )
    await log_info(
        f"PostgreSQL подключён: {settings.database.DB_HOST}:{settings.database.DB_PORT}/{settings.database.DB_NAME}",
        type_msg=TypeMsg.INFO,
    )
    await apply_schema(db)


async def apply_schema(db: DatabaseManager) -> None:
    """Применяет migrations/init.sql (идемпотентный DDL)."""
    from src.config.loader import get_project_root

    schema_path = get_project_root() / "migrations" / "init.sql"
    if not schema_path.exists():
        await log_error(f"Файл схемы БД не найден: {schema_path}")
        return

    schema_sql = schema_path.read_text(encoding="utf-8")

    # Несколько процессов могут стартовать одновременно
    async with db.transaction() as conn:
        await conn.execute("SELECT pg_advisory_xact_lock($1)", SCHEMA_LOCK_KEY)
        await conn.execute(schema_sql)

    await log_info("Схема БД применена", type_msg=TypeMsg.INFO)


async def close_db() -> None:
    await get_db().disconnect()
