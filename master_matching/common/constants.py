# master_matching/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class OrderStatus(str, Enum):
    """Статусы заказа с точки зрения матчинга."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    NO_MASTER_FOUND = "no_master_found"
    ERROR_MATCHING = "error_matching"


# Средний радиус Земли в км
EARTH_RADIUS_KM: float = 6371.0
