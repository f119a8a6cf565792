# src/worker/__init__.py
"""
Фоновые воркеры.
"""

from src.worker.base import PeriodicWorker
from src.worker.scheduler import LifecycleScheduler

__all__ = ["PeriodicWorker", "LifecycleScheduler"]
