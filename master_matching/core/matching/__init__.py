# master_matching/core/matching/__init__.py
"""
Домен подбора мастера.
Ранжирование кандидатов и фиксация результата в заказе.
"""

from master_matching.core.matching.models import MatchResult
from master_matching.core.matching.selection import rank_candidates, score_masters
from master_matching.core.matching.service import MatchingService, describe_error

__all__ = [
    "MatchResult",
    "MatchingService",
    "describe_error",
    "rank_candidates",
    "score_masters",
]
