# master_matching/core/orders/repository.py
"""
Репозиторий для работы с заказами в БД.

Все переходы статуса условные (WHERE status = ...): запись, не затронувшая
ни одной строки, означает, что заказ уже обработан другим вызовом.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from master_matching.common.constants import OrderStatus, TypeMsg
from master_matching.common.logger import log_info
from master_matching.core.masters.models import MasterCandidate
from master_matching.core.orders.models import AssignmentCommit, Order
from master_matching.infra.database import DatabaseManager


_ORDER_COLUMNS = """
    id, category, client_latitude, client_longitude,
    status, master_id, master_name, distance_to_master_km,
    error_message, requeue_count, created_at, updated_at
"""


def _affected_rows(status: str) -> int:
    """Достаёт число затронутых строк из статуса asyncpg ("UPDATE 1" -> 1)."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class OrderRepository:
    """Репозиторий заказов."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Инициализация репозитория.

        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """
        Получает заказ по ID.

        Args:
            order_id: ID заказа

        Returns:
            Заказ или None, если его нет
        """
        row = await self._db.fetchrow(
            f"""
            SELECT {_ORDER_COLUMNS}
            FROM orders
            WHERE id = $1
            """,
            order_id,
        )

        if row is None:
            return None

        return self._row_to_order(row)

    async def commit_assignment(
        self,
        order_id: str,
        candidates: Sequence[MasterCandidate],
        *,
        claim_master: bool = True,
        distance_decimals: int = 1,
    ) -> AssignmentCommit:
        """
        Атомарно назначает заказу первого доступного кандидата.

        В одной транзакции: блокирует строку заказа, проверяет что он
        всё ещё pending, затем по порядку пытается занять мастеров
        (compare-and-set по is_available). Проигранный захват означает,
        что мастера уже забрал другой заказ, и берётся следующий кандидат.
        Если никого занять не удалось, заказ получает no_master_found.

        Args:
            order_id: ID заказа
            candidates: Кандидаты, отсортированные по расстоянию
            claim_master: Снимать ли флаг доступности с назначенного мастера
            distance_decimals: Точность округления расстояния

        Returns:
            AssignmentCommit с итоговым статусом и выбранным кандидатом
        """
        conflicts: list[str] = []

        async with self._db.transaction() as conn:
            current = await conn.fetchval(
                "SELECT status FROM orders WHERE id = $1 FOR UPDATE",
                order_id,
            )
            if current != OrderStatus.PENDING.value:
                return AssignmentCommit()

            chosen: Optional[MasterCandidate] = None
            for candidate in candidates:
                if not claim_master:
                    chosen = candidate
                    break

                claimed = await conn.fetchval(
                    """
                    UPDATE masters
                    SET is_available = FALSE, updated_at = NOW()
                    WHERE id = $1 AND is_available = TRUE
                    RETURNING id
                    """,
                    candidate.master_id,
                )
                if claimed is None:
                    conflicts.append(candidate.master_id)
                    continue

                chosen = candidate
                break

            if chosen is None:
                await conn.execute(
                    """
                    UPDATE orders
                    SET status = $2, updated_at = NOW()
                    WHERE id = $1
                    """,
                    order_id,
                    OrderStatus.NO_MASTER_FOUND.value,
                )
                return AssignmentCommit(status=OrderStatus.NO_MASTER_FOUND, conflicts=conflicts)

            await conn.execute(
                """
                UPDATE orders
                SET status = $2,
                    master_id = $3,
                    master_name = $4,
                    distance_to_master_km = $5,
                    error_message = NULL,
                    updated_at = NOW()
                WHERE id = $1
                """,
                order_id,
                OrderStatus.ASSIGNED.value,
                chosen.master_id,
                chosen.name,
                round(chosen.distance_km, distance_decimals),
            )

        if conflicts:
            await log_info(
                f"Заказ {order_id}: мастера {', '.join(conflicts)} уже заняты, назначен {chosen.master_id}",
                type_msg=TypeMsg.WARNING,
            )

        return AssignmentCommit(status=OrderStatus.ASSIGNED, candidate=chosen, conflicts=conflicts)

    async def mark_no_master_found(self, order_id: str) -> bool:
        """
        Переводит pending-заказ в no_master_found.

        Returns:
            True, если запись применена
        """
        result = await self._db.execute(
            """
            UPDATE orders
            SET status = $2, updated_at = NOW()
            WHERE id = $1 AND status = $3
            """,
            order_id,
            OrderStatus.NO_MASTER_FOUND.value,
            OrderStatus.PENDING.value,
        )
        return _affected_rows(result) > 0

    async def mark_error(self, order_id: str, message: str) -> bool:
        """
        Переводит pending-заказ в error_matching с текстом ошибки.

        Args:
            order_id: ID заказа
            message: Текст ошибки

        Returns:
            True, если запись применена
        """
        result = await self._db.execute(
            """
            UPDATE orders
            SET status = $2, error_message = $3, updated_at = NOW()
            WHERE id = $1 AND status = $4
            """,
            order_id,
            OrderStatus.ERROR_MATCHING.value,
            message,
            OrderStatus.PENDING.value,
        )
        return _affected_rows(result) > 0

    async def requeue(
        self,
        order_id: str,
        statuses: Iterable[OrderStatus],
        max_attempts: int,
    ) -> Optional[Order]:
        """
        Возвращает заказ в pending и очищает результат прошлого подбора.

        Условие на статус и счётчик проверяется в самом UPDATE,
        поэтому параллельные попытки не увеличат счётчик дважды.

        Returns:
            Обновлённый заказ или None, если условие не выполнилось
        """
        row = await self._db.fetchrow(
            f"""
            UPDATE orders
            SET status = $2,
                requeue_count = requeue_count + 1,
                master_id = NULL,
                master_name = NULL,
                distance_to_master_km = NULL,
                error_message = NULL,
                updated_at = NOW()
            WHERE id = $1
              AND status = ANY($3::text[])
              AND requeue_count < $4
            RETURNING {_ORDER_COLUMNS}
            """,
            order_id,
            OrderStatus.PENDING.value,
            [s.value for s in statuses],
            max_attempts,
        )

        if row is None:
            return None

        return self._row_to_order(row)

    async def find_requeue_candidates(
        self,
        statuses: Iterable[OrderStatus],
        max_attempts: int,
        limit: int = 100,
    ) -> list[Order]:
        """
        Заказы в указанных статусах, у которых ещё остались попытки.
        Самые давние первыми.
        """
        rows = await self._db.fetch(
            f"""
            SELECT {_ORDER_COLUMNS}
            FROM orders
            WHERE status = ANY($1::text[])
              AND requeue_count < $2
            ORDER BY updated_at
            LIMIT $3
            """,
            [s.value for s in statuses],
            max_attempts,
            limit,
        )
        return [self._row_to_order(row) for row in rows]

    async def touch_stale_pending(
        self,
        older_than_seconds: int,
        max_attempts: int,
        limit: int = 100,
    ) -> list[Order]:
        """
        Находит pending-заказы, которые не менялись дольше заданного времени,
        обновляет им updated_at и увеличивает requeue_count.

        Заказы, исчерпавшие лимит попыток, не затрагиваются
        (их забирает expire_stale_pending).

        Args:
            older_than_seconds: Сколько секунд заказ должен пролежать в pending
            max_attempts: Лимит повторных попыток
            limit: Максимум заказов за вызов

        Returns:
            Список затронутых заказов
        """
        rows = await self._db.fetch(
            f"""
            UPDATE orders
            SET updated_at = NOW(),
                requeue_count = requeue_count + 1
            WHERE id IN (
                SELECT id FROM orders
                WHERE status = $1
                  AND updated_at < NOW() - ($2::int * INTERVAL '1 second')
                  AND requeue_count < $3
                ORDER BY updated_at
                LIMIT $4
                FOR UPDATE SKIP LOCKED
            )
            RETURNING {_ORDER_COLUMNS}
            """,
            OrderStatus.PENDING.value,
            older_than_seconds,
            max_attempts,
            limit,
        )
        return [self._row_to_order(row) for row in rows]

    async def expire_stale_pending(
        self,
        older_than_seconds: int,
        max_attempts: int,
        message: str,
        limit: int = 100,
    ) -> list[str]:
        """
        Переводит в error_matching зависшие pending-заказы,
        у которых не осталось попыток.

        Returns:
            ID переведённых заказов
        """
        rows = await self._db.fetch(
            """
            UPDATE orders
            SET status = $4, error_message = $5, updated_at = NOW()
            WHERE id IN (
                SELECT id FROM orders
                WHERE status = $1
                  AND updated_at < NOW() - ($2::int * INTERVAL '1 second')
                  AND requeue_count >= $3
                ORDER BY updated_at
                LIMIT $6
                FOR UPDATE SKIP LOCKED
            )
              AND status = $1
            RETURNING id
            """,
            OrderStatus.PENDING.value,
            older_than_seconds,
            max_attempts,
            OrderStatus.ERROR_MATCHING.value,
            message,
            limit,
        )
        return [row["id"] for row in rows]

    @staticmethod
    def _row_to_order(row) -> Order:
        """Конвертирует строку БД в модель Order."""
        return Order(
            id=row["id"],
            category=row["category"],
            client_latitude=row["client_latitude"],
            client_longitude=row["client_longitude"],
            status=OrderStatus(row["status"]),
            master_id=row["master_id"],
            master_name=row["master_name"],
            distance_to_master_km=row["distance_to_master_km"],
            error_message=row["error_message"],
            requeue_count=row["requeue_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
