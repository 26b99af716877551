# master_matching/core/orders/__init__.py
"""
Домен заказов.
Модель, репозиторий с условными переходами статуса, политика повторов.
"""

from master_matching.core.orders.models import AssignmentCommit, Order
from master_matching.core.orders.repository import OrderRepository
from master_matching.core.orders.requeue import RequeueDecision, RequeuePolicy
from master_matching.core.orders.service import OrderService, order_event_payload

__all__ = [
    "AssignmentCommit",
    "Order",
    "OrderRepository",
    "RequeueDecision",
    "RequeuePolicy",
    "OrderService",
    "order_event_payload",
]
