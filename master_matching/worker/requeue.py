# master_matching/worker/requeue.py
"""
Воркер повторной постановки заказов.
Периодически возвращает в pending заказы, застрявшие в error_matching
(и no_master_found, если это разрешено), и переотправляет давно висящие pending.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from master_matching.common.constants import TypeMsg
from master_matching.common.logger import log_error, log_info
from master_matching.core.orders.repository import OrderRepository
from master_matching.core.orders.service import OrderService
from master_matching.infra.database import DatabaseManager
from master_matching.infra.event_bus import DomainEvent, EventBus
from master_matching.infra.redis_client import RedisClient
from master_matching.worker.base import BaseWorker

SWEEP_LOCK_KEY = "requeue:sweep"


class RequeueWorker(BaseWorker):
    """
    Воркер повторов.
    Событий не слушает, работает по таймеру. Один проход за интервал
    на все экземпляры: блокировка sweep живёт весь интервал и не снимается.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        db: Optional[DatabaseManager] = None,
        redis: Optional[RedisClient] = None,
        order_service: Optional[OrderService] = None,
    ) -> None:
        from master_matching.config import settings

        super().__init__(event_bus=event_bus, db=db, redis=redis)
        self.order_service = order_service or OrderService(
            OrderRepository(self.db),
            event_bus=self.event_bus,
        )

        requeue = settings.requeue
        self.enabled = requeue.REQUEUE_ENABLED
        self.interval = requeue.REQUEUE_SWEEP_INTERVAL
        self.batch_size = requeue.REQUEUE_BATCH_SIZE
        self.stale_pending_after = requeue.REQUEUE_STALE_PENDING_AFTER

    @property
    def name(self) -> str:
        return "RequeueWorker"

    @property
    def subscriptions(self) -> List[str]:
        return []

    async def handle_event(self, event: DomainEvent) -> None:
        """Событий не получает."""

    async def on_start(self) -> None:
        if not self.enabled:
            await log_info("Повторная постановка заказов отключена (REQUEUE_ENABLED=false)", type_msg=TypeMsg.INFO)
            return
        self._tasks.append(asyncio.create_task(self._sweep_loop()))

    async def _sweep_loop(self) -> None:
        """Цикл sweep до остановки воркера."""
        while self._running:
            try:
                await self.sweep_once()
            except Exception as e:
                await log_error(f"Ошибка sweep в воркере {self.name}: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    async def sweep_once(self) -> bool:
        """
        Один проход sweep.

        Returns:
            True, если проход выполнен этим экземпляром
        """
        token = await self.redis.acquire_lock(SWEEP_LOCK_KEY, self.interval)
        if token is None:
            await log_info("Sweep выполняет другой экземпляр, пропускаем", type_msg=TypeMsg.DEBUG)
            return False

        await self.order_service.requeue_due(limit=self.batch_size)
        await self.order_service.republish_stale_pending(self.stale_pending_after, limit=self.batch_size)
        return True
