# master_matching/core/orders/models.py
"""
Модели данных заказов.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from master_matching.common.constants import OrderStatus
from master_matching.core.geo import Location, is_valid_coordinates
from master_matching.core.masters.models import MasterCandidate


class Order(BaseModel):
    """
    Заказ на услугу.
    Создаётся внешним сервисом приёма заявок, движок матчинга
    только переводит его из pending в терминальный статус.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="ID заказа (назначается при создании)")
    category: str = Field(..., description="Требуемая категория услуги")

    # Локация клиента
    client_latitude: Optional[float] = Field(None, description="Широта клиента")
    client_longitude: Optional[float] = Field(None, description="Долгота клиента")

    # Состояние матчинга
    status: OrderStatus = Field(OrderStatus.PENDING, description="Статус заказа")
    master_id: Optional[str] = Field(None, description="ID назначенного мастера")
    master_name: Optional[str] = Field(None, description="Имя назначенного мастера")
    distance_to_master_km: Optional[float] = Field(None, ge=0.0, description="Расстояние до мастера")
    error_message: Optional[str] = Field(None, description="Ошибка последнего подбора")
    requeue_count: int = Field(0, ge=0, description="Сколько раз заказ возвращали в pending")

    # Временные метки
    created_at: Optional[datetime] = Field(None, description="Время создания")
    updated_at: Optional[datetime] = Field(None, description="Время последнего изменения")

    @property
    def client_location(self) -> Optional[Location]:
        """Локация клиента или None, если она отсутствует или некорректна."""
        if not is_valid_coordinates(self.client_latitude, self.client_longitude):
            return None
        return Location(latitude=self.client_latitude, longitude=self.client_longitude)

    @property
    def is_pending(self) -> bool:
        """Ожидает ли заказ подбора."""
        return self.status == OrderStatus.PENDING


@dataclass
class AssignmentCommit:
    """
    Итог транзакции назначения.

    status=None означает, что заказ уже покинул pending до начала
    транзакции и ничего не записано.
    """
    status: Optional[OrderStatus] = None
    candidate: Optional[MasterCandidate] = None
    conflicts: list[str] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        """Была ли выполнена запись в заказ."""
        return self.status is not None
