# src/config/loader.py
"""
Загрузчик конфигурации сервиса выплат.

config/config.json хранит плоский набор ключей; каждая секция забирает
из него свои поля. Хосты и секреты, перечисленные в ENV_KEYS секции,
переопределяются переменными окружения (или .env).
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def get_config_path() -> Path:
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Читает config.json без ключей-комментариев (_comment_*)."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    raw = json.loads(config_path.read_text(encoding="utf-8"))
    return {key: value for key, value in raw.items() if not key.startswith("_comment_")}


# =============================================================================
# СЕКЦИИ
# =============================================================================

class ConfigSection(BaseModel):
    """Секция настроек, собираемая из плоского словаря."""

    ENV_KEYS: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def from_flat(cls, data: dict[str, Any]) -> "ConfigSection":
        values = {name: data[name] for name in cls.model_fields if name in data}
        for name in cls.ENV_KEYS:
            env_value = os.getenv(name)
            if env_value:
                values[name] = env_value
        return cls(**values)


class SystemSettings(ConfigSection):
    ENV_KEYS = ("COMPONENT_MODE",)

    PROJECT_NAME: str = "rideshare_payouts"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"
    # payments_service | payout_scheduler | all
    COMPONENT_MODE: str = "all"


class DeploymentSettings(ConfigSection):
    ENV_KEYS = ("PAYMENTS_SERVICE_HOST", "PAYMENTS_SERVICE_PORT")

    PAYMENTS_SERVICE_HOST: str = "0.0.0.0"
    PAYMENTS_SERVICE_PORT: int = 8087


class LoggingSettings(ConfigSection):
    ENV_KEYS = ("LOG_LEVEL",)

    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = True
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class DatabaseSettings(ConfigSection):
    """PostgreSQL: пул asyncpg и политика повторов при обрыве соединения."""

    ENV_KEYS = ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD")

    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "rideshare"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


class RedisSettings(ConfigSection):
    ENV_KEYS = ("REDIS_HOST", "REDIS_PORT", "REDIS_PASSWORD")

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "rideshare"
    REDIS_MAX_CONNECTIONS: int = 50

    @property
    def url(self) -> str:
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RabbitMQSettings(ConfigSection):
    ENV_KEYS = ("RABBITMQ_HOST", "RABBITMQ_PORT", "RABBITMQ_USER", "RABBITMQ_PASSWORD")

    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "rideshare.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @property
    def url(self) -> str:
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class StripeSettings(ConfigSection):
    """Stripe: ключи только из окружения, в config.json их не кладём."""

    ENV_KEYS = ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "STRIPE_API_VERSION")

    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_API_VERSION: str | None = None
    STRIPE_MAX_NETWORK_RETRIES: int = 2
    CURRENCY: str = "usd"

    @property
    def is_configured(self) -> bool:
        return self.STRIPE_SECRET_KEY.startswith(("sk_", "rk_"))


class EarningsSettings(ConfigSection):
    """Комиссии платформы: процент и фикс процессинга, плюс фикс за поездку."""

    PROCESSING_FEE_PERCENTAGE: float = Field(default=0.029, ge=0)
    PROCESSING_FEE_FIXED: float = Field(default=0.30, ge=0)
    COMMISSION_PER_RIDE: float = Field(default=2.00, ge=0)


class PayoutSettings(ConfigSection):
    PAYOUT_WINDOW_DAYS: int = Field(default=7, ge=1)
    PAYOUT_WINDOW_MODE: str = "rolling"
    PAYOUT_SCHEDULE_WEEKDAY: int = Field(default=0, ge=0, le=6)
    PAYOUT_SCHEDULE_HOUR: int = Field(default=9, ge=0, le=23)
    PAYOUT_CHECK_INTERVAL: int = Field(default=3600, ge=1)
    PAYOUT_MAX_CONCURRENCY: int = Field(default=5, ge=1)
    PAYOUT_RUN_LOCK_TTL: int = Field(default=3600, ge=1)
    PAYOUT_MIN_AMOUNT: float = Field(default=0.0, ge=0)
    PAYOUT_METHOD: str = "bank_account"
    TIMEZONE: str = "UTC"

    @field_validator("PAYOUT_WINDOW_MODE")
    @classmethod
    def validate_window_mode(cls, v: str) -> str:
        if v not in ("rolling", "calendar"):
            raise ValueError(f"Неизвестный режим окна выплат: {v}")
        return v


# =============================================================================
# НАСТРОЙКИ ПРИЛОЖЕНИЯ
# =============================================================================

_SECTIONS: dict[str, type[ConfigSection]] = {
    "system": SystemSettings,
    "deployment": DeploymentSettings,
    "logging": LoggingSettings,
    "database": DatabaseSettings,
    "redis": RedisSettings,
    "rabbitmq": RabbitMQSettings,
    "stripe": StripeSettings,
    "earnings": EarningsSettings,
    "payouts": PayoutSettings,
}


class Settings(BaseSettings):
    """Все секции конфигурации сервиса."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    stripe: StripeSettings = Field(default_factory=StripeSettings)
    earnings: EarningsSettings = Field(default_factory=EarningsSettings)
    payouts: PayoutSettings = Field(default_factory=PayoutSettings)

    @classmethod
    def from_dict(cls, config_data: dict[str, Any]) -> "Settings":
        """Раскладывает плоский словарь по секциям."""
        flat = {key: value for key, value in config_data.items() if not key.startswith("_comment_")}
        return cls(**{name: section.from_flat(flat) for name, section in _SECTIONS.items()})

    @classmethod
    def from_config_json(cls) -> "Settings":
        return cls.from_dict(load_config_json())


@lru_cache()
def get_settings() -> Settings:
    """Синглтон настроек; .env из корня проекта подгружается до чтения окружения."""
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


settings = get_settings()
