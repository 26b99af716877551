# master_matching/infra/__init__.py
"""
Инфраструктурный слой.
Работа с внешними сервисами: PostgreSQL, Redis, RabbitMQ.
"""

from master_matching.infra.database import DatabaseManager, get_db
from master_matching.infra.redis_client import RedisClient, get_redis
from master_matching.infra.event_bus import DomainEvent, EventBus, EventTypes, get_event_bus

__all__ = [
    "DatabaseManager",
    "get_db",
    "RedisClient",
    "get_redis",
    "DomainEvent",
    "EventBus",
    "EventTypes",
    "get_event_bus",
]
