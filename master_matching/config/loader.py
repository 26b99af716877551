# master_matching/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Хосты и секреты переопределяются из переменных окружения (.env поддерживается).
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации (можно переопределить через CONFIG_PATH)."""
    env_path = os.getenv("CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return get_project_root() / "config" / "config.json"


def load_config_json(path: Path | None = None) -> dict[str, Any]:
    """Загружает config.json и возвращает словарь без ключей-комментариев."""
    config_path = path or get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return {k: v for k, v in data.items() if not k.startswith("_comment_")}


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "master_matching"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    COMPONENT_MODE: str = "all"


class DeploymentSettings(BaseModel):
    """Настройки развёртывания компонентов."""
    MATCHING_API_HOST: str = "0.0.0.0"
    MATCHING_API_PORT: int = 8091
    MATCHING_WORKER_INSTANCES_COUNT: int = 1


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_FORMAT: str = "colored"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_MAX_BYTES: int = 10485760

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_format(cls, v: str) -> str:
        """Допустимы только colored и json."""
        if v not in ("colored", "json"):
            raise ValueError(f"Неизвестный LOG_FORMAT: {v}")
        return v


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "master_matching"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 2
    DB_MAX_POOL_SIZE: int = 10
    DB_COMMAND_TIMEOUT: int = 30
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "matching"
    REDIS_MAX_CONNECTIONS: int = 20

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "matching.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class MatchingSettings(BaseModel):
    """Настройки подбора мастера."""
    SEARCH_RADIUS_KM: float = Field(5.0, gt=0)
    CLAIM_MASTER_ON_ASSIGN: bool = True
    PROCESSING_LOCK_TTL: int = Field(60, ge=1)
    DISTANCE_DECIMALS: int = Field(1, ge=0)


class RequeueSettings(BaseModel):
    """Настройки повторной постановки зависших заказов."""
    REQUEUE_ENABLED: bool = True
    MAX_REQUEUE_ATTEMPTS: int = Field(3, ge=0)
    REQUEUE_BASE_DELAY: int = Field(30, ge=0)
    REQUEUE_MAX_DELAY: int = Field(900, ge=0)
    REQUEUE_NO_MASTER_FOUND: bool = False
    REQUEUE_SWEEP_INTERVAL: int = Field(15, ge=1)
    REQUEUE_BATCH_SIZE: int = Field(100, ge=1)
    REQUEUE_STALE_PENDING_AFTER: int = Field(300, ge=1)

    @model_validator(mode="after")
    def check_delays(self) -> "RequeueSettings":
        """Максимальная задержка не может быть меньше базовой."""
        if self.REQUEUE_MAX_DELAY < self.REQUEUE_BASE_DELAY:
            raise ValueError("REQUEUE_MAX_DELAY должен быть >= REQUEUE_BASE_DELAY")
        return self


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

# Секция -> (модель, ключи, которые разрешено переопределять из окружения)
_SECTIONS: dict[str, tuple[type[BaseModel], tuple[str, ...]]] = {
    "system": (SystemSettings, ("ENVIRONMENT", "COMPONENT_MODE")),
    "deployment": (DeploymentSettings, ("MATCHING_API_HOST", "MATCHING_API_PORT")),
    "logging": (LoggingSettings, ("LOG_LEVEL", "LOG_FORMAT")),
    "database": (DatabaseSettings, ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD")),
    "redis": (RedisSettings, ("REDIS_HOST", "REDIS_PORT", "REDIS_PASSWORD")),
    "rabbitmq": (RabbitMQSettings, ("RABBITMQ_HOST", "RABBITMQ_PORT", "RABBITMQ_USER", "RABBITMQ_PASSWORD")),
    "matching": (MatchingSettings, ()),
    "requeue": (RequeueSettings, ()),
}


def _build_section(
    model: type[BaseModel],
    data: dict[str, Any],
    env_keys: tuple[str, ...],
) -> BaseModel:
    """
    Собирает секцию настроек из плоского config.json.
    Значения из окружения имеют приоритет для ключей из env_keys.
    """
    values: dict[str, Any] = {}

    for field_name in model.model_fields:
        if field_name in data:
            values[field_name] = data[field_name]
        if field_name in env_keys:
            env_value = os.getenv(field_name)
            if env_value:
                values[field_name] = env_value

    return model(**values)


class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    requeue: RequeueSettings = Field(default_factory=RequeueSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """Создаёт Settings из плоского словаря (формат config.json)."""
        sections = {
            name: _build_section(model, data, env_keys)
            for name, (model, env_keys) in _SECTIONS.items()
        }
        return cls(**sections)

    @classmethod
    def from_config_json(cls, path: Path | None = None) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Хосты и секреты переопределяются из переменных окружения.
        """
        return cls.from_dict(load_config_json(path))


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
