# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секретные данные и адреса сервисов переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from src.common.constants import FeedKind


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
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
    PROJECT_NAME: str = "delivery_tracking"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"
    ENVIRONMENT: str = "development"
    COMPONENT_MODE: str = "all"


class DeploymentSettings(BaseModel):
    """Хосты и порты компонентов."""
    LOCATION_API_HOST: str = "0.0.0.0"
    LOCATION_API_PORT: int = 8090
    CRON_API_HOST: str = "0.0.0.0"
    CRON_API_PORT: int = 8092
    WEB_ADMIN_HOST: str = "0.0.0.0"
    WEB_ADMIN_PORT: int = 8081


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "delivery"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 2
    DB_MAX_POOL_SIZE: int = 10
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

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
    REDIS_MAX_CONNECTIONS: int = 50

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ (доменные события)."""
    RABBITMQ_ENABLED: bool = True
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "delivery.events"

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class TrackerSettings(BaseModel):
    """Настройки трекера геопозиций водителей."""
    TRACKER_FEED: FeedKind = FeedKind.REDIS
    TRACKER_INITIAL_FETCH_LIMIT: int = Field(default=500, ge=1)
    TRACKER_REDIS_CHANNEL: str = "driver_locations:changes"
    TRACKER_PG_CHANNEL: str = "driver_locations_changes"
    TRACKER_QUEUE_MAXSIZE: int = Field(default=0, ge=0)


class LifecycleSettings(BaseModel):
    """Пороги автоматической смены статусов (в минутах)."""
    PENDING_TRIP_TIMEOUT_MINUTES: int = Field(default=5, ge=1)
    IN_PROGRESS_TRIP_TIMEOUT_MINUTES: int = Field(default=60, ge=1)
    PENDING_ORDER_CONFIRM_MINUTES: int = Field(default=5, ge=1)
    PREPARING_ORDER_READY_MINUTES: int = Field(default=30, ge=1)
    LIFECYCLE_SCHEDULER_ENABLED: bool = False
    LIFECYCLE_INTERVAL_SECONDS: int = Field(default=300, ge=1)


class CronSettings(BaseModel):
    """Авторизация внешнего планировщика."""
    CRON_SECRET: str = ""
    CRON_HEADER: str = "X-Cron-Secret"

    @field_validator("CRON_SECRET", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает секрет из переменных окружения."""
        if not v:
            return os.getenv("CRON_SECRET", "")
        return v


class MapSettings(BaseModel):
    """Настройки карты водителей в админке."""
    MAP_CENTER_LAT: float = 31.5
    MAP_CENTER_LNG: float = 34.46
    MAP_ZOOM: int = 12
    MAP_FOCUS_ZOOM: int = 15
    MAP_FLY_DURATION: float = 0.6
    MAP_REFRESH_INTERVAL: float = 1.0


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    lifecycle: LifecycleSettings = Field(default_factory=LifecycleSettings)
    cron: CronSettings = Field(default_factory=CronSettings)
    map: MapSettings = Field(default_factory=MapSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls, path: Path | None = None) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты и адреса переопределяются из переменных окружения.
        """
        data = load_config_json(path)

        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "delivery_tracking"),
                VERSION=data.get("VERSION", "1.0.0"),
                DEBUG=data.get("DEBUG", True),
                LOG_LEVEL=data.get("LOG_LEVEL", "DEBUG"),
                ENVIRONMENT=os.getenv("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
                COMPONENT_MODE=os.getenv("COMPONENT_MODE", data.get("COMPONENT_MODE", "all")),
            ),
            deployment=DeploymentSettings(
                LOCATION_API_HOST=data.get("LOCATION_API_HOST", "0.0.0.0"),
                LOCATION_API_PORT=int(os.getenv("LOCATION_API_PORT", data.get("LOCATION_API_PORT", 8090))),
                CRON_API_HOST=data.get("CRON_API_HOST", "0.0.0.0"),
                CRON_API_PORT=int(os.getenv("CRON_API_PORT", data.get("CRON_API_PORT", 8092))),
                WEB_ADMIN_HOST=data.get("WEB_ADMIN_HOST", "0.0.0.0"),
                WEB_ADMIN_PORT=int(os.getenv("WEB_ADMIN_PORT", data.get("WEB_ADMIN_PORT", 8081))),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=data.get("LOG_LEVEL", "DEBUG"),
                LOG_TO_FILE=data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/app.log"),
                LOG_FORMAT=data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
                LOG_BACKUP_COUNT=data.get("LOG_BACKUP_COUNT", 5),
            ),
            database=DatabaseSettings(
                DB_HOST=os.getenv("DB_HOST", data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", data.get("DB_NAME", "delivery")),
                DB_USER=os.getenv("DB_USER", data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=data.get("DB_MIN_POOL_SIZE", 2),
                DB_MAX_POOL_SIZE=data.get("DB_MAX_POOL_SIZE", 10),
                DB_COMMAND_TIMEOUT=data.get("DB_COMMAND_TIMEOUT", 60),
                DB_RETRY_ATTEMPTS=data.get("DB_RETRY_ATTEMPTS", 3),
                DB_RETRY_DELAY=data.get("DB_RETRY_DELAY", 1.0),
            ),
            redis=RedisSettings(
                REDIS_HOST=os.getenv("REDIS_HOST", data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", data.get("REDIS_PORT", 6379))),
                REDIS_DB=data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", data.get("REDIS_PASSWORD", "")),
                REDIS_MAX_CONNECTIONS=data.get("REDIS_MAX_CONNECTIONS", 50),
            ),
            rabbitmq=RabbitMQSettings(
                RABBITMQ_ENABLED=data.get("RABBITMQ_ENABLED", True),
                RABBITMQ_HOST=os.getenv("RABBITMQ_HOST", data.get("RABBITMQ_HOST", "localhost")),
                RABBITMQ_PORT=int(os.getenv("RABBITMQ_PORT", data.get("RABBITMQ_PORT", 5672))),
                RABBITMQ_USER=os.getenv("RABBITMQ_USER", data.get("RABBITMQ_USER", "guest")),
                RABBITMQ_PASSWORD=os.getenv("RABBITMQ_PASSWORD", data.get("RABBITMQ_PASSWORD", "guest")),
                RABBITMQ_VHOST=data.get("RABBITMQ_VHOST", "/"),
                RABBITMQ_EXCHANGE=data.get("RABBITMQ_EXCHANGE", "delivery.events"),
            ),
            tracker=TrackerSettings(
                TRACKER_FEED=os.getenv("TRACKER_FEED", data.get("TRACKER_FEED", FeedKind.REDIS.value)),
                TRACKER_INITIAL_FETCH_LIMIT=data.get("TRACKER_INITIAL_FETCH_LIMIT", 500),
                TRACKER_REDIS_CHANNEL=data.get("TRACKER_REDIS_CHANNEL", "driver_locations:changes"),
                TRACKER_PG_CHANNEL=data.get("TRACKER_PG_CHANNEL", "driver_locations_changes"),
                TRACKER_QUEUE_MAXSIZE=data.get("TRACKER_QUEUE_MAXSIZE", 0),
            ),
            lifecycle=LifecycleSettings(
                PENDING_TRIP_TIMEOUT_MINUTES=data.get("PENDING_TRIP_TIMEOUT_MINUTES", 5),
                IN_PROGRESS_TRIP_TIMEOUT_MINUTES=data.get("IN_PROGRESS_TRIP_TIMEOUT_MINUTES", 60),
                PENDING_ORDER_CONFIRM_MINUTES=data.get("PENDING_ORDER_CONFIRM_MINUTES", 5),
                PREPARING_ORDER_READY_MINUTES=data.get("PREPARING_ORDER_READY_MINUTES", 30),
                LIFECYCLE_SCHEDULER_ENABLED=data.get("LIFECYCLE_SCHEDULER_ENABLED", False),
                LIFECYCLE_INTERVAL_SECONDS=data.get("LIFECYCLE_INTERVAL_SECONDS", 300),
            ),
            cron=CronSettings(
                CRON_SECRET=os.getenv("CRON_SECRET", data.get("CRON_SECRET", "")),
                CRON_HEADER=data.get("CRON_HEADER", "X-Cron-Secret"),
            ),
            map=MapSettings(
                MAP_CENTER_LAT=data.get("MAP_CENTER_LAT", 31.5),
                MAP_CENTER_LNG=data.get("MAP_CENTER_LNG", 34.46),
                MAP_ZOOM=data.get("MAP_ZOOM", 12),
                MAP_FOCUS_ZOOM=data.get("MAP_FOCUS_ZOOM", 15),
                MAP_FLY_DURATION=data.get("MAP_FLY_DURATION", 0.6),
                MAP_REFRESH_INTERVAL=data.get("MAP_REFRESH_INTERVAL", 1.0),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением config.json подгружает .env из корня проекта.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
