# master_matching/core/__init__.py
"""
Доменный слой (Core Domain).
Бизнес-логика подбора мастера; инфраструктура передаётся снаружи.
"""

from master_matching.core.masters import Master, MasterRepository
from master_matching.core.orders import Order, OrderRepository, OrderService
from master_matching.core.matching import MatchingService, MatchResult

__all__ = [
    "Master",
    "MasterRepository",
    "Order",
    "OrderRepository",
    "OrderService",
    "MatchingService",
    "MatchResult",
]
