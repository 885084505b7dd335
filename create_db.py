# create_db.py
"""
Создаёт базу данных сервиса, если её ещё нет, и применяет схему.
"""

import asyncio

import asyncpg

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg
from src.infra.database import init_db, close_db


async def create_db() -> None:
    db_name = settings.database.DB_NAME
    try:
        # Подключаемся к служебной БД postgres, чтобы создать новую
        sys_conn = await asyncpg.connect(
            user=settings.database.DB_USER,
            password=settings.database.DB_PASSWORD,
            host=settings.database.DB_HOST,
            port=settings.database.DB_PORT,
            database="postgres",
        )
        try:
            exists = await sys_conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name)
            if not exists:
                await log_info(f"Создание базы данных {db_name}...", type_msg=TypeMsg.INFO)
                await sys_conn.execute(f'CREATE DATABASE "{db_name}"')
            else:
                await log_info(f"База данных {db_name} уже существует", type_msg=TypeMsg.INFO)
        finally:
            await sys_conn.close()
    except asyncpg.PostgresError as e:
        await log_error(f"Не удалось создать базу данных {db_name}: {e}")
        raise

    # init_db применяет migrations/init.sql
    await init_db()
    await close_db()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(create_db())
