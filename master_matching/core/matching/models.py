# master_matching/core/matching/models.py
"""
Результат одного прохода подбора мастера.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from master_matching.common.constants import OrderStatus
from master_matching.core.masters.models import MasterCandidate


@dataclass(frozen=True)
class MatchResult:
    """
    Итог подбора для заказа.

    status=None означает пропуск: заказ не в pending, нет локации,
    заказ не найден или его обрабатывает параллельная доставка.
    """
    order_id: str
    status: Optional[OrderStatus] = None
    candidate: Optional[MasterCandidate] = None
    error_message: Optional[str] = None
    skip_reason: Optional[str] = None

    @classmethod
    def assigned(cls, order_id: str, candidate: MasterCandidate) -> "MatchResult":
        return cls(order_id=order_id, status=OrderStatus.ASSIGNED, candidate=candidate)

    @classmethod
    def unmatched(cls, order_id: str) -> "MatchResult":
        return cls(order_id=order_id, status=OrderStatus.NO_MASTER_FOUND)

    @classmethod
    def error(cls, order_id: str, message: str) -> "MatchResult":
        return cls(order_id=order_id, status=OrderStatus.ERROR_MATCHING, error_message=message)

    @classmethod
    def skipped(cls, order_id: str, reason: str) -> "MatchResult":
        return cls(order_id=order_id, skip_reason=reason)

    @property
    def is_skipped(self) -> bool:
        return self.status is None
