# master_matching/core/geo/__init__.py
"""
Geo-утилиты.
Расстояние по формуле гаверсинусов и проверка координат.
"""

from master_matching.core.geo.distance import Location, haversine_km, is_valid_coordinates

__all__ = [
    "Location",
    "haversine_km",
    "is_valid_coordinates",
]
