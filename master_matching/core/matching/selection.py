# master_matching/core/matching/selection.py
"""
Выбор ближайшего мастера.
Чистые функции без ввода-вывода.
"""

from __future__ import annotations

from typing import Iterable

from master_matching.core.geo import Location, haversine_km
from master_matching.core.masters.models import Master, MasterCandidate


def score_masters(
    client: Location,
    category: str,
    masters: Iterable[Master],
) -> list[MasterCandidate]:
    """
    Считает расстояние до каждого подходящего мастера.

    Мастера без имени или локации, недоступные и без нужной
    категории пропускаются молча.

    Args:
        client: Локация клиента
        category: Требуемая категория
        masters: Мастера из хранилища

    Returns:
        Кандидаты в порядке обхода
    """
    scored: list[MasterCandidate] = []
    for master in masters:
        if not master.is_available or not master.offers(category) or not master.is_eligible:
            continue
        scored.append(MasterCandidate(
            master_id=master.id,
            name=master.name,
            distance_km=haversine_km(client, master.last_location),
        ))
    return scored


def rank_candidates(
    client: Location,
    category: str,
    masters: Iterable[Master],
    radius_km: float,
) -> list[MasterCandidate]:
    """
    Все кандидаты в радиусе, от ближнего к дальнему.

    Граница радиуса включительна. При равенстве расстояний первым
    идёт меньший ID мастера. Первый элемент назначается; остальные
    используются, если ближайшего мастера успел занять другой заказ.
    """
    in_radius = [
        candidate
        for candidate in score_masters(client, category, masters)
        if candidate.distance_km <= radius_km
    ]
    return sorted(in_radius, key=lambda c: (c.distance_km, c.master_id))
