# master_matching/worker/matching.py
"""
Воркер подбора мастера для новых заказов.
"""

from __future__ import annotations

from typing import List, Optional

from master_matching.common.constants import TypeMsg
from master_matching.common.logger import log_info, log_warning
from master_matching.core.masters.repository import MasterRepository
from master_matching.core.matching.service import MatchingService
from master_matching.core.orders.repository import OrderRepository
from master_matching.infra.database import DatabaseManager
from master_matching.infra.event_bus import DomainEvent, EventBus, EventTypes
from master_matching.infra.redis_client import RedisClient
from master_matching.worker.base import BaseWorker


class MatchingWorker(BaseWorker):
    """
    Воркер матчинга.
    Подписывается на ORDER_CREATED и ORDER_REQUEUED и запускает подбор мастера.
    Снимок заказа из события не используется: заказ перечитывается из БД.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        db: Optional[DatabaseManager] = None,
        redis: Optional[RedisClient] = None,
        matching_service: Optional[MatchingService] = None,
    ) -> None:
        super().__init__(event_bus=event_bus, db=db, redis=redis)
        self.matching_service = matching_service or MatchingService(
            orders=OrderRepository(self.db),
            masters=MasterRepository(self.db),
            redis=self.redis,
            event_bus=self.event_bus,
        )

    @property
    def name(self) -> str:
        return "MatchingWorker"

    @property
    def subscriptions(self) -> List[str]:
        return [
            EventTypes.ORDER_CREATED,
            EventTypes.ORDER_REQUEUED,
        ]

    async def handle_event(self, event: DomainEvent) -> None:
        """Обрабатывает событие о новом (или возвращённом в pending) заказе."""
        order_id = event.payload.get("order_id")
        if not order_id:
            await log_warning(
                f"Событие {event.event_type} без order_id",
                extra={"payload": event.payload},
            )
            return

        result = await self.matching_service.process_order(str(order_id))

        await log_info(
            f"Заказ {order_id} обработан: "
            f"{result.status.value if result.status else 'skip (' + str(result.skip_reason) + ')'}",
            type_msg=TypeMsg.DEBUG,
        )
