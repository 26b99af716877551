# master_matching/core/masters/__init__.py
"""
Домен мастеров.
Модель и репозиторий для чтения кандидатов.
"""

from master_matching.core.masters.models import Master, MasterCandidate
from master_matching.core.masters.repository import MasterRepository

__all__ = [
    "Master",
    "MasterCandidate",
    "MasterRepository",
]
