# tests/core/test_orders_service.py
"""
Тесты сервиса заказов (повторная постановка).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from master_matching.common.constants import OrderStatus
from master_matching.core.orders.requeue import RequeuePolicy
from master_matching.core.matching.service import MatchingService
from master_matching.core.orders.service import STALE_PENDING_ERROR, OrderService, order_event_payload
from master_matching.infra.event_bus import EventTypes

UPDATED = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
LATER = UPDATED + timedelta(hours=1)


@pytest.fixture
def repo() -> AsyncMock:
    repository = AsyncMock()
    repository.get_by_id = AsyncMock(return_value=None)
    repository.requeue = AsyncMock(return_value=None)
    repository.find_requeue_candidates = AsyncMock(return_value=[])
    repository.touch_stale_pending = AsyncMock(return_value=[])
    repository.expire_stale_pending = AsyncMock(return_value=[])
    return repository


@pytest.fixture
def policy() -> RequeuePolicy:
    return RequeuePolicy(max_attempts=3, base_delay=30, max_delay=900)


@pytest.fixture
def service(repo, mock_event_bus, policy) -> OrderService:
    return OrderService(repository=repo, event_bus=mock_event_bus, policy=policy)


class TestOrderEventPayload:
    def test_snapshot(self, make_order) -> None:
        order = make_order(latitude=50.45, longitude=30.52, requeue_count=2)

        payload = order_event_payload(order)

        assert payload == {
            "order_id": "order-1",
            "category": "plumbing",
            "client_latitude": 50.45,
            "client_longitude": 30.52,
            "status": "pending",
            "requeue_count": 2,
        }


class TestRequeue:
    """Тесты ручного возврата заказа."""

    @pytest.mark.asyncio
    async def test_order_not_found(self, service, repo) -> None:
        decision = await service.requeue("ghost")

        assert decision.allowed is False
        assert decision.order is None
        repo.requeue.assert_not_called()

    @pytest.mark.asyncio
    async def test_requeues_and_announces(self, service, repo, mock_event_bus, make_order) -> None:
        failed = make_order(status=OrderStatus.ERROR_MATCHING, updated_at=UPDATED, error_message="boom")
        pending = make_order(requeue_count=1)
        repo.get_by_id.return_value = failed
        repo.requeue.return_value = pending

        decision = await service.requeue("order-1", now=LATER)

        assert decision.allowed is True
        assert decision.order is pending
        repo.requeue.assert_awaited_once_with(
            "order-1", frozenset({OrderStatus.ERROR_MATCHING}), 3
        )
        event = mock_event_bus.publish.call_args.args[0]
        assert event.event_type == EventTypes.ORDER_REQUEUED
        assert event.payload["order_id"] == "order-1"
        assert event.payload["requeue_count"] == 1

    @pytest.mark.asyncio
    async def test_rejected_by_policy(self, service, repo, mock_event_bus, make_order) -> None:
        repo.get_by_id.return_value = make_order(status=OrderStatus.ASSIGNED, updated_at=UPDATED)

        decision = await service.requeue("order-1", now=LATER)

        assert decision.allowed is False
        assert "not requeueable" in decision.reason
        repo.requeue.assert_not_called()
        mock_event_bus.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_force_ignores_backoff(self, service, repo, make_order) -> None:
        repo.get_by_id.return_value = make_order(status=OrderStatus.ERROR_MATCHING, updated_at=UPDATED)
        repo.requeue.return_value = make_order(requeue_count=1)

        assert (await service.requeue("order-1", now=UPDATED)).allowed is False
        assert (await service.requeue("order-1", now=UPDATED, force=True)).allowed is True

    @pytest.mark.asyncio
    async def test_concurrent_change(self, service, repo, mock_event_bus, make_order) -> None:
        repo.get_by_id.return_value = make_order(status=OrderStatus.ERROR_MATCHING, updated_at=UPDATED)
        repo.requeue.return_value = None

        decision = await service.requeue("order-1", now=LATER)

        assert decision.allowed is False
        assert decision.reason == "order state changed concurrently"
        mock_event_bus.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_requeue(
        self, service, repo, mock_event_bus, make_order
    ) -> None:
        repo.get_by_id.return_value = make_order(status=OrderStatus.ERROR_MATCHING, updated_at=UPDATED)
        repo.requeue.return_value = make_order(requeue_count=1)
        mock_event_bus.publish.side_effect = RuntimeError("нет соединения с RabbitMQ")

        decision = await service.requeue("order-1", now=LATER)

        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_without_event_bus(self, repo, policy, make_order) -> None:
        service = OrderService(repository=repo, policy=policy)
        repo.get_by_id.return_value = make_order(status=OrderStatus.ERROR_MATCHING, updated_at=UPDATED)
        repo.requeue.return_value = make_order(requeue_count=1)

        assert (await service.requeue("order-1", now=LATER)).allowed is True


class TestRequeueDue:
    """Тесты пакетного возврата."""

    @pytest.mark.asyncio
    async def test_only_orders_past_backoff(self, service, repo, mock_event_bus, make_order) -> None:
        due = make_order("due", status=OrderStatus.ERROR_MATCHING, updated_at=UPDATED)
        waiting = make_order("waiting", status=OrderStatus.ERROR_MATCHING, updated_at=LATER)
        repo.find_requeue_candidates.return_value = [due, waiting]
        repo.requeue.side_effect = lambda order_id, statuses, max_attempts: make_order(order_id, requeue_count=1)

        requeued = await service.requeue_due(now=LATER, limit=50)

        assert [o.id for o in requeued] == ["due"]
        repo.find_requeue_candidates.assert_awaited_once_with(
            frozenset({OrderStatus.ERROR_MATCHING}), 3, 50
        )
        assert mock_event_bus.publish.await_count == 1

    @pytest.mark.asyncio
    async def test_skips_lost_races(self, service, repo, make_order) -> None:
        repo.find_requeue_candidates.return_value = [
            make_order("a", status=OrderStatus.ERROR_MATCHING, updated_at=UPDATED),
        ]
        repo.requeue.return_value = None

        assert await service.requeue_due(now=LATER) == []


class TestRepublishStalePending:
    @pytest.mark.asyncio
    async def test_announces_each_stale_order(self, service, repo, mock_event_bus, make_order) -> None:
        repo.touch_stale_pending.return_value = [make_order("a"), make_order("b")]

        stale = await service.republish_stale_pending(older_than_seconds=300, limit=10)

        assert [o.id for o in stale] == ["a", "b"]
        repo.touch_stale_pending.assert_awaited_once_with(300, 3, 10)
        types = [call.args[0].event_type for call in mock_event_bus.publish.call_args_list]
        assert types == [EventTypes.ORDER_REQUEUED, EventTypes.ORDER_REQUEUED]

    @pytest.mark.asyncio
    async def test_expires_orders_without_attempts(self, service, repo) -> None:
        repo.expire_stale_pending.return_value = ["x"]

        await service.republish_stale_pending(older_than_seconds=300, limit=10)

        repo.expire_stale_pending.assert_awaited_once_with(300, 3, STALE_PENDING_ERROR, 10)

    @pytest.mark.asyncio
    async def test_nothing_stale(self, service, mock_event_bus) -> None:
        assert await service.republish_stale_pending(older_than_seconds=300) == []
        mock_event_bus.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_republishing_stops_at_attempt_limit(
        self, order_repo, master_repo, policy, mock_event_bus, make_order
    ) -> None:
        """Заказ без локации клиента не крутится бесконечно между проверкой и движком."""
        order_repo.orders["order-1"] = make_order(latitude=None, longitude=None)
        service = OrderService(repository=order_repo, event_bus=mock_event_bus, policy=policy)
        engine = MatchingService(
            orders=order_repo,
            masters=master_repo,
            radius_km=5.0,
            claim_master=True,
            lock_ttl=30,
            distance_decimals=1,
        )

        for _ in range(50):
            await service.republish_stale_pending(older_than_seconds=300)
            await engine.process_order("order-1")

        order = order_repo.orders["order-1"]
        assert mock_event_bus.publish.await_count == policy.max_attempts
        assert order.requeue_count == policy.max_attempts
        assert order.status == OrderStatus.ERROR_MATCHING
        assert order.error_message == STALE_PENDING_ERROR

    @pytest.mark.asyncio
    async def test_expired_order_is_not_requeued_again(
        self, order_repo, policy, mock_event_bus, make_order
    ) -> None:
        order_repo.orders["order-1"] = make_order(requeue_count=3)
        service = OrderService(repository=order_repo, event_bus=mock_event_bus, policy=policy)

        await service.republish_stale_pending(older_than_seconds=300)
        decision = await service.requeue("order-1", force=True)

        assert decision.allowed is False
        assert "limit" in decision.reason
        mock_event_bus.publish.assert_not_called()
