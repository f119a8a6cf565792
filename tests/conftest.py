# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")

from fakes import FakeFeed, make_transaction_db


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ
# =============================================================================

@pytest.fixture
def mock_db() -> MagicMock:
    """Мок менеджера БД с транзакциями."""
    return make_transaction_db()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок Redis клиента."""
    redis = AsyncMock()
    redis.publish_json = AsyncMock(return_value=1)
    redis.health_check = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    bus = AsyncMock()
    bus.publish = AsyncMock(return_value=True)
    return bus


@pytest.fixture
def fake_feed() -> FakeFeed:
    """Фид с ручной доставкой событий."""
    return FakeFeed()
