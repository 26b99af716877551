# master_matching/worker/__init__.py
"""
Фоновые воркеры: обработка событий из RabbitMQ и периодические повторы.
"""

from master_matching.worker.base import BaseWorker
from master_matching.worker.matching import MatchingWorker
from master_matching.worker.requeue import RequeueWorker

__all__ = ["BaseWorker", "MatchingWorker", "RequeueWorker"]
