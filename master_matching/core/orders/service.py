# master_matching/core/orders/service.py
"""
Сервис заказов.
Чтение состояния подбора и повторная постановка застрявших заказов.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from master_matching.common.constants import TypeMsg
from master_matching.common.logger import log_error, log_info, log_warning
from master_matching.core.orders.models import Order
from master_matching.core.orders.repository import OrderRepository
from master_matching.core.orders.requeue import RequeueDecision, RequeuePolicy
from master_matching.infra.event_bus import DomainEvent, EventBus, EventTypes

STALE_PENDING_ERROR = "matching did not complete: requeue limit reached while pending"


def order_event_payload(order: Order) -> dict[str, Any]:
    """Снимок заказа для событий шины."""
    return {
        "order_id": order.id,
        "category": order.category,
        "client_latitude": order.client_latitude,
        "client_longitude": order.client_longitude,
        "status": order.status.value,
        "requeue_count": order.requeue_count,
    }


class OrderService:
    """
    Сервис заказов.
    Управляет возвратом заказов в pending по правилам RequeuePolicy.
    """

    def __init__(
        self,
        repository: OrderRepository,
        event_bus: Optional[EventBus] = None,
        policy: Optional[RequeuePolicy] = None,
    ) -> None:
        """
        Инициализация сервиса.

        Args:
            repository: Репозиторий заказов
            event_bus: Шина событий (None: события не публикуются)
            policy: Политика повторной постановки (по умолчанию из конфига)
        """
        self._repo = repository
        self._event_bus = event_bus

        if policy is None:
            from master_matching.config import settings
            policy = RequeuePolicy.from_settings(settings.requeue)
        self._policy = policy

    @property
    def policy(self) -> RequeuePolicy:
        return self._policy

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Получает заказ по ID."""
        return await self._repo.get_by_id(order_id)

    async def requeue(
        self,
        order_id: str,
        *,
        force: bool = False,
        now: Optional[datetime] = None,
    ) -> RequeueDecision:
        """
        Возвращает заказ в pending, если это разрешено политикой.

        Args:
            order_id: ID заказа
            force: Не ждать окончания backoff
            now: Текущее время (UTC), для тестов

        Returns:
            RequeueDecision: allowed=True и обновлённый заказ при успехе;
            order=None, если заказ не найден
        """
        order = await self._repo.get_by_id(order_id)
        if order is None:
            return RequeueDecision(False, "order not found")

        decision = self._policy.check(order, now=now, force=force)
        if not decision.allowed:
            await log_info(
                f"Заказ {order_id} не возвращён в pending: {decision.reason}",
                type_msg=TypeMsg.DEBUG,
            )
            return decision

        updated = await self._repo.requeue(order_id, self._policy.statuses, self._policy.max_attempts)
        if updated is None:
            return RequeueDecision(False, "order state changed concurrently", order)

        await self._announce(updated)
        return RequeueDecision(True, "ok", updated)

    async def requeue_due(self, now: Optional[datetime] = None, limit: int = 100) -> list[Order]:
        """
        Возвращает в pending все заказы, у которых истёк backoff.

        Args:
            now: Текущее время (UTC)
            limit: Максимум заказов за проход

        Returns:
            Список возвращённых заказов
        """
        candidates = await self._repo.find_requeue_candidates(
            self._policy.statuses,
            self._policy.max_attempts,
            limit,
        )

        requeued: list[Order] = []
        for order in candidates:
            if not self._policy.check(order, now=now).allowed:
                continue

            updated = await self._repo.requeue(order.id, self._policy.statuses, self._policy.max_attempts)
            if updated is None:
                continue

            await self._announce(updated)
            requeued.append(updated)

        if requeued:
            await log_info(
                f"Возвращено в pending заказов: {len(requeued)}",
                type_msg=TypeMsg.INFO,
            )
        return requeued

    async def republish_stale_pending(self, older_than_seconds: int, limit: int = 100) -> list[Order]:
        """
        Повторно публикует события для pending-заказов, которые давно никто не обработал
        (потерянное событие или сбой записи финального статуса).

        Каждая повторная публикация расходует попытку из requeue_count.
        Заказы без оставшихся попыток переводятся в error_matching,
        дальше их не трогает ни эта проверка, ни requeue_due.
        """
        max_attempts = self._policy.max_attempts

        expired = await self._repo.expire_stale_pending(
            older_than_seconds,
            max_attempts,
            STALE_PENDING_ERROR,
            limit,
        )
        if expired:
            await log_warning(
                f"Заказы {', '.join(expired)} переведены в error_matching: "
                f"лимит повторных публикаций ({max_attempts}) исчерпан"
            )

        stale = await self._repo.touch_stale_pending(older_than_seconds, max_attempts, limit)
        for order in stale:
            await self._announce(order)

        if stale:
            await log_info(
                f"Повторно опубликовано зависших pending-заказов: {len(stale)}",
                type_msg=TypeMsg.WARNING,
            )
        return stale

    async def _announce(self, order: Order) -> None:
        """Публикует ORDER_REQUEUED, ошибки публикации только логируются."""
        await log_info(
            f"Заказ {order.id} возвращён в pending (попытка {order.requeue_count})",
            type_msg=TypeMsg.INFO,
        )

        if self._event_bus is None:
            return

        try:
            await self._event_bus.publish(DomainEvent(
                event_type=EventTypes.ORDER_REQUEUED,
                payload=order_event_payload(order),
            ))
        except Exception as e:
            await log_error(f"Не удалось опубликовать ORDER_REQUEUED для {order.id}: {e}")
