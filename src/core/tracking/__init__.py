# src/core/tracking/__init__.py
"""
Модуль отслеживания геопозиций водителей.
"""

from src.core.tracking.models import ChangeEvent, DriverPosition
from src.core.tracking.feeds import ChangeFeed, PostgresChangeFeed, RedisChangeFeed, build_feed
from src.core.tracking.repository import DriverLocationRepository
from src.core.tracking.tracker import LiveLocationTracker

__all__ = [
    "ChangeEvent",
    "DriverPosition",
    "ChangeFeed",
    "PostgresChangeFeed",
    "RedisChangeFeed",
    "build_feed",
    "DriverLocationRepository",
    "LiveLocationTracker",
]
