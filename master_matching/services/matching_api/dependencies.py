# master_matching/services/matching_api/dependencies.py
"""
Зависимости для Matching API.
"""

from __future__ import annotations

from typing import Optional

from master_matching.common.constants import TypeMsg
from master_matching.common.logger import log_info
from master_matching.core.orders.repository import OrderRepository
from master_matching.core.orders.service import OrderService
from master_matching.infra.database import DatabaseManager
from master_matching.infra.event_bus import EventBus
from master_matching.infra.redis_client import RedisClient


_db: Optional[DatabaseManager] = None
_redis: Optional[RedisClient] = None
_event_bus: Optional[EventBus] = None
_order_service: Optional[OrderService] = None

# Закрываем только соединения, которые открыли сами
_opened: list[str] = []


async def init_dependencies() -> None:
    """
    Инициализация всех зависимостей сервиса.
    Уже открытые соединения (режим all в main.py) переиспользуются.
    """
    global _db, _redis, _event_bus, _order_service

    _db = DatabaseManager()
    if not _db.is_connected:
        await _db.connect()
        _opened.append("postgres")

    _redis = RedisClient()
    if not _redis.is_connected:
        await _redis.connect()
        _opened.append("redis")

    _event_bus = EventBus()
    if not _event_bus.is_connected:
        await _event_bus.connect()
        _opened.append("rabbitmq")

    _order_service = OrderService(OrderRepository(_db), event_bus=_event_bus)

    await log_info("Matching API: зависимости инициализированы", type_msg=TypeMsg.INFO)


async def close_dependencies() -> None:
    """Закрытие ресурсов, открытых init_dependencies."""
    global _order_service

    if "rabbitmq" in _opened and _event_bus is not None:
        await _event_bus.disconnect()
    if "redis" in _opened and _redis is not None:
        await _redis.disconnect()
    if "postgres" in _opened and _db is not None:
        await _db.disconnect()

    _opened.clear()
    _order_service = None
    await log_info("Matching API: зависимости закрыты", type_msg=TypeMsg.DEBUG)


async def get_db() -> DatabaseManager:
    if _db is None:
        raise RuntimeError("DatabaseManager не инициализирован")
    return _db


async def get_redis() -> RedisClient:
    if _redis is None:
        raise RuntimeError("RedisClient не инициализирован")
    return _redis


async def get_event_bus() -> EventBus:
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован")
    return _event_bus


async def get_order_service() -> OrderService:
    if _order_service is None:
        raise RuntimeError("OrderService не инициализирован")
    return _order_service
