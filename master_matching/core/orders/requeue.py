# master_matching/core/orders/requeue.py
"""
Политика повторной постановки заказов, застрявших после неудачного подбора.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from master_matching.common.constants import OrderStatus
from master_matching.core.orders.models import Order


@dataclass(frozen=True)
class RequeueDecision:
    """Решение политики по конкретному заказу."""
    allowed: bool
    reason: str
    order: Optional[Order] = None


@dataclass(frozen=True)
class RequeuePolicy:
    """
    Правила повторной постановки.

    Attributes:
        max_attempts: Сколько раз заказ можно вернуть в pending
        base_delay: Базовая задержка (секунды), удваивается с каждой попыткой
        max_delay: Верхняя граница задержки (секунды)
        statuses: Статусы, из которых разрешён возврат
    """
    max_attempts: int = 3
    base_delay: int = 30
    max_delay: int = 900
    statuses: frozenset[OrderStatus] = frozenset({OrderStatus.ERROR_MATCHING})

    @classmethod
    def from_settings(cls, requeue_settings) -> "RequeuePolicy":
        """Создаёт политику из секции requeue конфигурации."""
        statuses = {OrderStatus.ERROR_MATCHING}
        if requeue_settings.REQUEUE_NO_MASTER_FOUND:
            statuses.add(OrderStatus.NO_MASTER_FOUND)

        return cls(
            max_attempts=requeue_settings.MAX_REQUEUE_ATTEMPTS,
            base_delay=requeue_settings.REQUEUE_BASE_DELAY,
            max_delay=requeue_settings.REQUEUE_MAX_DELAY,
            statuses=frozenset(statuses),
        )

    def delay_for(self, requeue_count: int) -> timedelta:
        """Задержка перед следующей попыткой: base * 2**n, но не больше max_delay."""
        seconds = min(self.base_delay * (2 ** requeue_count), self.max_delay)
        return timedelta(seconds=seconds)

    def next_attempt_at(self, order: Order) -> Optional[datetime]:
        """Момент, начиная с которого заказ можно вернуть (None, если время неизвестно)."""
        if order.updated_at is None:
            return None
        updated_at = order.updated_at
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        return updated_at + self.delay_for(order.requeue_count)

    def check(
        self,
        order: Order,
        now: Optional[datetime] = None,
        force: bool = False,
    ) -> RequeueDecision:
        """
        Проверяет, можно ли вернуть заказ в pending.

        Args:
            order: Заказ
            now: Текущее время (UTC)
            force: Пропустить ожидание backoff (статус и лимит проверяются всегда)

        Returns:
            RequeueDecision
        """
        if order.status not in self.statuses:
            return RequeueDecision(False, f"status {order.status.value} is not requeueable", order)

        if order.requeue_count >= self.max_attempts:
            return RequeueDecision(
                False,
                f"requeue limit reached ({order.requeue_count}/{self.max_attempts})",
                order,
            )

        if not force:
            due = self.next_attempt_at(order)
            current = now or datetime.now(timezone.utc)
            if due is not None and current < due:
                return RequeueDecision(False, f"backoff until {due.isoformat()}", order)

        return RequeueDecision(True, "ok", order)
