# master_matching/services/matching_api/schemas.py
"""
Схемы запросов и ответов Matching API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from master_matching.common.constants import OrderStatus
from master_matching.core.orders.models import Order


class HealthStatus(BaseModel):
    """Состояние сервиса и его зависимостей."""
    service: str
    status: str
    version: str
    dependencies: dict[str, str] = Field(default_factory=dict)


class OrderMatchResponse(BaseModel):
    """Текущее состояние подбора мастера для заказа."""
    order_id: str
    category: str
    status: OrderStatus
    master_id: Optional[str] = None
    master_name: Optional[str] = None
    distance_to_master_km: Optional[float] = None
    error_message: Optional[str] = None
    requeue_count: int = 0
    updated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderMatchResponse":
        return cls(
            order_id=order.id,
            category=order.category,
            status=order.status,
            master_id=order.master_id,
            master_name=order.master_name,
            distance_to_master_km=order.distance_to_master_km,
            error_message=order.error_message,
            requeue_count=order.requeue_count,
            updated_at=order.updated_at,
        )


class RequeueRequest(BaseModel):
    """Параметры ручного возврата заказа в pending."""
    force: bool = Field(False, description="Не ждать окончания backoff")
