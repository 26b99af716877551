# master_matching/core/geo/distance.py
"""
Расчёт расстояния между точками на поверхности Земли.
Формула гаверсинусов, средний радиус Земли 6371 км.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from master_matching.common.constants import EARTH_RADIUS_KM


@dataclass(frozen=True)
class Location:
    """Геолокация в градусах."""
    latitude: float
    longitude: float


def haversine_km(origin: Location, target: Location) -> float:
    """
    Вычисляет расстояние по дуге большого круга между двумя точками (в км).

    Координаты не валидируются: для значений вне допустимого диапазона
    результат определён математически, но смысла не имеет.

    Args:
        origin: Первая точка
        target: Вторая точка

    Returns:
        Расстояние в километрах (>= 0)
    """
    dlat = math.radians(target.latitude - origin.latitude)
    dlon = math.radians(target.longitude - origin.longitude)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(origin.latitude))
        * math.cos(math.radians(target.latitude))
        * math.sin(dlon / 2) ** 2
    )
    # Погрешность округления может дать a чуть больше 1
    a = min(1.0, a)

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def is_valid_coordinates(latitude: Any, longitude: Any) -> bool:
    """Проверяет, что координаты являются конечными числами в допустимом диапазоне."""
    for value in (latitude, longitude):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False

    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0
