# master_matching/common/__init__.py
"""
Общие утилиты, константы и логгер.
"""

from master_matching.common.logger import get_logger, log_info, log_error, log_warning, log_debug
from master_matching.common.constants import TypeMsg, OrderStatus

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "TypeMsg",
    "OrderStatus",
]
