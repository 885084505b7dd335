# src/common/logger.py
"""
Логирование сервиса выплат.

Консоль: цветной текст для разработки или JSON для продакшена.
Файлы (LOG_TO_FILE): общий лог сервиса и отдельный лог ошибок,
оба с ротацией по размеру.

Асинхронные функции log_* указывают в записи место вызова
(модуль, функция, строка) через stacklevel.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from src.common.constants import TypeMsg


DEFAULT_LOGGER = "rideshare"

_LEVELS = {
    TypeMsg.DEBUG: logging.DEBUG,
    TypeMsg.INFO: logging.INFO,
    TypeMsg.WARNING: logging.WARNING,
    TypeMsg.ERROR: logging.ERROR,
    TypeMsg.CRITICAL: logging.CRITICAL,
}

_NOISY_LIBRARIES = ("asyncpg", "redis", "aio_pika", "aiormq", "httpx", "stripe", "uvicorn.access")

_LOGGING_INITIALIZED: bool = False
_loggers: dict[str, logging.Logger] = {}
_file_handlers: list[logging.Handler] = []


# =============================================================================
# НАСТРОЙКИ
# =============================================================================

@dataclass(frozen=True)
class LogConfig:
    level: str = "DEBUG"
    fmt: str = "colored"
    to_file: bool = False
    file_path: str = "logs/app.log"
    max_bytes: int = 10485760
    backup_count: int = 5

    @classmethod
    def load(cls) -> "LogConfig":
        """Берёт секцию logging из настроек; без config.json остаются значения по умолчанию."""
        try:
            from src.config import settings
            section = settings.logging
        except Exception:
            return cls()

        def pick(value: Any, kind: type, default: Any) -> Any:
            return value if isinstance(value, kind) else default

        base = cls()
        return cls(
            level=pick(section.LOG_LEVEL, str, base.level),
            fmt=pick(section.LOG_FORMAT, str, base.fmt),
            to_file=section.LOG_TO_FILE is True,
            file_path=pick(section.LOG_FILE_PATH, str, base.file_path),
            max_bytes=pick(section.LOG_MAX_BYTES, int, base.max_bytes),
            backup_count=pick(getattr(section, "LOG_BACKUP_COUNT", None), int, base.backup_count),
        )


# =============================================================================
# ФОРМАТТЕРЫ
# =============================================================================

class JsonFormatter(logging.Formatter):
    """Одна запись = одна JSON-строка."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Читаемый цветной вывод для консоли."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[90m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.DIM)
        stamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        where = f"{self.DIM}{record.module}.{record.funcName}:{record.lineno}{self.RESET}"

        line = f"{stamp} {color}{record.levelname:<8}{self.RESET} {where} {record.getMessage()}"

        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            line += f" {self.DIM}{pairs}{self.RESET}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _file_handlers_for(cfg: LogConfig, formatter: logging.Formatter) -> list[logging.Handler]:
    """Файловые хендлеры общие для всех логгеров процесса."""
    if _file_handlers:
        return _file_handlers

    log_path = Path(cfg.file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Каждый процесс (API, планировщик) пишет в свой файл
    service = os.getenv("SERVICE_NAME")
    stem = f"{log_path.stem}_{service}" if service else log_path.stem

    main_handler = RotatingFileHandler(
        log_path.with_name(f"{stem}.log"),
        maxBytes=cfg.max_bytes,
        backupCount=cfg.backup_count,
        encoding="utf-8",
    )
    error_handler = RotatingFileHandler(
        log_path.with_name("errors.log"),
        maxBytes=cfg.max_bytes,
        backupCount=cfg.backup_count,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)

    for handler in (main_handler, error_handler):
        handler.setFormatter(formatter)
        _file_handlers.append(handler)
    return _file_handlers


# =============================================================================
# ЛОГГЕРЫ
# =============================================================================

def get_logger(name: str = DEFAULT_LOGGER) -> logging.Logger:
    """Настроенный логгер; хендлеры навешиваются один раз на имя."""
    cached = _loggers.get(name)
    if cached is not None:
        return cached

    cfg = LogConfig.load()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, cfg.level.upper(), logging.DEBUG))
    logger.propagate = False

    if not logger.handlers:
        formatter: logging.Formatter = JsonFormatter() if cfg.fmt == "json" else ColoredFormatter()

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        logger.addHandler(console)

        if cfg.to_file:
            for handler in _file_handlers_for(cfg, formatter):
                logger.addHandler(handler)

    _loggers[name] = logger
    return logger


def setup_logging() -> None:
    """Идемпотентная инициализация логирования процесса."""
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED:
        return
    _LOGGING_INITIALIZED = True

    get_logger(DEFAULT_LOGGER)
    for library in _NOISY_LIBRARIES:
        logging.getLogger(library).setLevel(logging.WARNING)


# =============================================================================
# АСИНХРОННЫЕ ФУНКЦИИ ЛОГИРОВАНИЯ
# =============================================================================

def _emit(
    level: int,
    message: str,
    logger_name: str,
    extra: dict[str, Any] | None,
    exc_info: bool = False,
) -> None:
    # _emit -> log_* -> вызывающий код
    get_logger(logger_name).log(
        level,
        message,
        extra={"context": extra or {}},
        exc_info=exc_info,
        stacklevel=3,
    )


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Основная функция логирования.

    Args:
        message: Текст сообщения
        type_msg: Уровень сообщения
        logger_name: Имя логгера
        extra: Контекст записи (driver_id, окно и т.п.)
    """
    _emit(_LEVELS.get(type_msg, logging.INFO), message, logger_name, extra)


async def log_debug(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    _emit(logging.DEBUG, message, logger_name, extra)


async def log_warning(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    _emit(logging.WARNING, message, logger_name, extra)


async def log_error(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """Логирование ошибки; exc_info=True добавляет трейсбек текущего исключения."""
    _emit(logging.ERROR, message, logger_name, extra, exc_info=exc_info)
