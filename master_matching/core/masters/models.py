# master_matching/core/masters/models.py
"""
Модели данных мастеров.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from master_matching.core.geo import Location, is_valid_coordinates


class Master(BaseModel):
    """
    Мастер (исполнитель).
    Запись принадлежит внешнему сервису статусов и геолокации,
    движок матчинга её только читает и снимает флаг доступности при назначении.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="ID мастера")
    name: Optional[str] = Field(None, description="Отображаемое имя")
    specialization: list[str] = Field(default_factory=list, description="Категории услуг")
    is_available: bool = Field(False, description="Готов принять заказ")
    last_latitude: Optional[float] = Field(None, description="Последняя известная широта")
    last_longitude: Optional[float] = Field(None, description="Последняя известная долгота")
    updated_at: Optional[datetime] = Field(None, description="Время последнего обновления")

    @property
    def last_location(self) -> Optional[Location]:
        """Последняя известная локация или None, если её нет или она некорректна."""
        if not is_valid_coordinates(self.last_latitude, self.last_longitude):
            return None
        return Location(latitude=self.last_latitude, longitude=self.last_longitude)

    @property
    def is_eligible(self) -> bool:
        """Можно ли оценивать мастера по расстоянию (есть имя и локация)."""
        return bool(self.name) and self.last_location is not None

    def offers(self, category: str) -> bool:
        """Оказывает ли мастер услугу указанной категории."""
        return category in self.specialization


@dataclass(frozen=True)
class MasterCandidate:
    """Кандидат на заказ: мастер и расстояние до клиента в рамках одного подбора."""
    master_id: str
    name: str
    distance_km: float
