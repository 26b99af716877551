# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")

from master_matching.common.constants import OrderStatus
from master_matching.core.masters.models import Master, MasterCandidate
from master_matching.core.orders.models import AssignmentCommit, Order


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации (плоский формат config.json)."""
    return {
        "_comment_system": "комментарий",
        "PROJECT_NAME": "master_matching_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "COMPONENT_MODE": "worker",
        "MATCHING_API_PORT": 9000,
        "LOG_LEVEL": "INFO",
        "LOG_FORMAT": "json",
        "LOG_TO_FILE": False,
        "DB_HOST": "db.local",
        "DB_PORT": 6543,
        "DB_NAME": "matching_test",
        "DB_USER": "tester",
        "DB_RETRY_ATTEMPTS": 2,
        "DB_RETRY_DELAY": 0.5,
        "REDIS_HOST": "redis.local",
        "REDIS_NAMESPACE": "matching_test",
        "RABBITMQ_HOST": "mq.local",
        "RABBITMQ_EXCHANGE": "matching.test",
        "SEARCH_RADIUS_KM": 3.5,
        "CLAIM_MASTER_ON_ASSIGN": False,
        "MAX_REQUEUE_ATTEMPTS": 5,
        "REQUEUE_NO_MASTER_FOUND": True,
    }


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_connection() -> AsyncMock:
    """Мок соединения внутри транзакции."""
    conn = AsyncMock()
    conn.fetchval = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value="UPDATE 1")
    return conn


@pytest.fixture
def transactional_db(mock_db: AsyncMock, mock_connection: AsyncMock) -> AsyncMock:
    """Мок БД, у которого transaction() отдаёт mock_connection."""
    tx = MagicMock()
    tx.__aenter__ = AsyncMock(return_value=mock_connection)
    tx.__aexit__ = AsyncMock(return_value=False)
    mock_db.transaction = MagicMock(return_value=tx)
    return mock_db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)
    redis.acquire_lock = AsyncMock(return_value="lock-token")
    redis.release_lock = AsyncMock(return_value=True)
    redis.health_check = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.subscribe = AsyncMock(return_value=None)
    event_bus.health_check = AsyncMock(return_value=True)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# ФАБРИКИ МОДЕЛЕЙ
# =============================================================================

def _make_master(
    master_id: str,
    latitude: Optional[float] = 0.0,
    longitude: Optional[float] = 0.0,
    specialization: Sequence[str] = ("plumbing",),
    name: Optional[str] = "default",
    is_available: bool = True,
) -> Master:
    """Создаёт мастера; name="default" превращается в "Master <id>"."""
    return Master(
        id=master_id,
        name=f"Master {master_id}" if name == "default" else name,
        specialization=list(specialization),
        is_available=is_available,
        last_latitude=latitude,
        last_longitude=longitude,
    )


def _make_order(
    order_id: str = "order-1",
    category: str = "plumbing",
    latitude: Optional[float] = 0.0,
    longitude: Optional[float] = 0.0,
    status: OrderStatus = OrderStatus.PENDING,
    **kwargs: Any,
) -> Order:
    """Создаёт заказ с клиентом в (latitude, longitude)."""
    return Order(
        id=order_id,
        category=category,
        client_latitude=latitude,
        client_longitude=longitude,
        status=status,
        updated_at=kwargs.pop("updated_at", datetime(2026, 1, 1, tzinfo=timezone.utc)),
        **kwargs,
    )


def _order_row(order: Order) -> dict[str, Any]:
    """Строка таблицы orders для заказа (dict ведёт себя как asyncpg.Record по ключам)."""
    row = order.model_dump()
    row["status"] = order.status.value
    return row


# =============================================================================
# IN-MEMORY РЕПОЗИТОРИИ
# =============================================================================

class FakeMasterRepository:
    """Хранилище мастеров в памяти с тем же контрактом, что MasterRepository."""

    def __init__(self, masters: Sequence[Master] = (), error: Optional[Exception] = None) -> None:
        self.masters = list(masters)
        self.error = error
        self.calls = 0

    async def find_available_by_category(self, category: str) -> list[Master]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        found = [m for m in self.masters if m.is_available and category in m.specialization]
        return sorted(found, key=lambda m: m.id)

    def set_available(self, master_id: str, value: bool) -> bool:
        """Compare-and-set флага доступности; False, если значение уже такое."""
        for index, master in enumerate(self.masters):
            if master.id == master_id:
                if master.is_available == value:
                    return False
                self.masters[index] = master.model_copy(update={"is_available": value})
                return True
        return False


class FakeOrderRepository:
    """
    Хранилище заказов в памяти.
    Все переходы условные (только из pending), как в OrderRepository.
    Записи фиксируются в self.writes.
    """

    def __init__(
        self,
        orders: Sequence[Order] = (),
        masters: Optional[FakeMasterRepository] = None,
    ) -> None:
        self.orders: dict[str, Order] = {o.id: o for o in orders}
        self.masters = masters
        self.writes: list[tuple[str, str]] = []
        self.fail_on: dict[str, Exception] = {}

    def _maybe_fail(self, method: str) -> None:
        if method in self.fail_on:
            raise self.fail_on[method]

    def _update(self, order_id: str, **changes: Any) -> None:
        self.orders[order_id] = self.orders[order_id].model_copy(update=changes)

    def _is_pending(self, order_id: str) -> bool:
        order = self.orders.get(order_id)
        return order is not None and order.status == OrderStatus.PENDING

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        self._maybe_fail("get_by_id")
        order = self.orders.get(order_id)
        return order.model_copy() if order is not None else None

    async def commit_assignment(
        self,
        order_id: str,
        candidates: Sequence[MasterCandidate],
        *,
        claim_master: bool = True,
        distance_decimals: int = 1,
    ) -> AssignmentCommit:
        self._maybe_fail("commit_assignment")
        if not self._is_pending(order_id):
            return AssignmentCommit()

        conflicts: list[str] = []
        chosen: Optional[MasterCandidate] = None
        for candidate in candidates:
            if claim_master and self.masters is not None:
                if not self.masters.set_available(candidate.master_id, False):
                    conflicts.append(candidate.master_id)
                    continue
            chosen = candidate
            break

        if chosen is None:
            self._update(order_id, status=OrderStatus.NO_MASTER_FOUND)
            self.writes.append((order_id, OrderStatus.NO_MASTER_FOUND.value))
            return AssignmentCommit(status=OrderStatus.NO_MASTER_FOUND, conflicts=conflicts)

        self._update(
            order_id,
            status=OrderStatus.ASSIGNED,
            master_id=chosen.master_id,
            master_name=chosen.name,
            distance_to_master_km=round(chosen.distance_km, distance_decimals),
        )
        self.writes.append((order_id, OrderStatus.ASSIGNED.value))
        return AssignmentCommit(status=OrderStatus.ASSIGNED, candidate=chosen, conflicts=conflicts)

    async def mark_no_master_found(self, order_id: str) -> bool:
        self._maybe_fail("mark_no_master_found")
        if not self._is_pending(order_id):
            return False
        self._update(order_id, status=OrderStatus.NO_MASTER_FOUND)
        self.writes.append((order_id, OrderStatus.NO_MASTER_FOUND.value))
        return True

    async def mark_error(self, order_id: str, message: str) -> bool:
        self._maybe_fail("mark_error")
        if not self._is_pending(order_id):
            return False
        self._update(order_id, status=OrderStatus.ERROR_MATCHING, error_message=message)
        self.writes.append((order_id, OrderStatus.ERROR_MATCHING.value))
        return True

    # Время не моделируется: каждый pending-заказ считается зависшим

    async def touch_stale_pending(
        self,
        older_than_seconds: int,
        max_attempts: int,
        limit: int = 100,
    ) -> list[Order]:
        touched: list[Order] = []
        for order_id, order in list(self.orders.items()):
            if order.status != OrderStatus.PENDING or order.requeue_count >= max_attempts:
                continue
            self._update(order_id, requeue_count=order.requeue_count + 1)
            touched.append(self.orders[order_id].model_copy())
        return touched[:limit]

    async def expire_stale_pending(
        self,
        older_than_seconds: int,
        max_attempts: int,
        message: str,
        limit: int = 100,
    ) -> list[str]:
        expired: list[str] = []
        for order_id, order in list(self.orders.items()):
            if order.status != OrderStatus.PENDING or order.requeue_count < max_attempts:
                continue
            self._update(order_id, status=OrderStatus.ERROR_MATCHING, error_message=message)
            self.writes.append((order_id, OrderStatus.ERROR_MATCHING.value))
            expired.append(order_id)
        return expired[:limit]


@pytest.fixture
def master_repo() -> FakeMasterRepository:
    """Пустое хранилище мастеров (наполняется в тесте)."""
    return FakeMasterRepository()


@pytest.fixture
def order_repo(master_repo: FakeMasterRepository) -> FakeOrderRepository:
    """Хранилище заказов, связанное с master_repo для захвата мастеров."""
    return FakeOrderRepository(masters=master_repo)


@pytest.fixture
def make_master():
    """Фабрика мастеров."""
    return _make_master


@pytest.fixture
def make_order():
    """Фабрика заказов."""
    return _make_order


@pytest.fixture
def order_row():
    """Конвертер заказа в строку БД."""
    return _order_row
