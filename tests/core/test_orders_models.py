# tests/core/test_orders_models.py
"""
Тесты моделей заказа и результата подбора.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from master_matching.common.constants import OrderStatus
from master_matching.core.masters.models import MasterCandidate
from master_matching.core.matching.models import MatchResult
from master_matching.core.orders.models import AssignmentCommit, Order


class TestOrder:
    def test_defaults(self) -> None:
        order = Order(id="o-1", category="plumbing")

        assert order.status == OrderStatus.PENDING
        assert order.is_pending is True
        assert order.requeue_count == 0
        assert order.client_location is None

    def test_client_location(self) -> None:
        order = Order(id="o-1", category="plumbing", client_latitude=50.45, client_longitude=30.52)

        assert order.client_location.latitude == 50.45
        assert order.client_location.longitude == 30.52

    def test_invalid_location_is_none(self) -> None:
        order = Order(id="o-1", category="plumbing", client_latitude=120.0, client_longitude=30.0)
        assert order.client_location is None

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.ASSIGNED, OrderStatus.NO_MASTER_FOUND, OrderStatus.ERROR_MATCHING],
    )
    def test_not_pending_after_matching(self, status) -> None:
        order = Order(id="o-1", category="plumbing", status=status)

        assert order.is_pending is False

    def test_status_from_string(self) -> None:
        assert Order(id="o-1", category="x", status="no_master_found").status == OrderStatus.NO_MASTER_FOUND

    def test_negative_distance_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Order(id="o-1", category="x", distance_to_master_km=-1.0)


class TestAssignmentCommit:
    def test_not_applied_by_default(self) -> None:
        commit = AssignmentCommit()

        assert commit.applied is False
        assert commit.conflicts == []

    def test_applied(self) -> None:
        candidate = MasterCandidate("W2", "Master W2", 1.1)
        commit = AssignmentCommit(status=OrderStatus.ASSIGNED, candidate=candidate)

        assert commit.applied is True


class TestMatchResult:
    def test_factories(self) -> None:
        candidate = MasterCandidate("W2", "Master W2", 1.1)

        assert MatchResult.assigned("o", candidate).status == OrderStatus.ASSIGNED
        assert MatchResult.unmatched("o").status == OrderStatus.NO_MASTER_FOUND
        assert MatchResult.error("o", "boom").error_message == "boom"

    def test_skipped(self) -> None:
        result = MatchResult.skipped("o", "locked")

        assert result.is_skipped is True
        assert result.skip_reason == "locked"
        assert MatchResult.unmatched("o").is_skipped is False
