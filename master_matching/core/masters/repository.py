# master_matching/core/masters/repository.py
"""
Репозиторий мастеров (только чтение).
"""

from __future__ import annotations

from master_matching.common.constants import TypeMsg
from master_matching.common.logger import log_info
from master_matching.core.masters.models import Master
from master_matching.infra.database import DatabaseManager


_MASTER_COLUMNS = """
    id, name, specialization, is_available,
    last_latitude, last_longitude, updated_at
"""


class MasterRepository:
    """Репозиторий мастеров."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    async def find_available_by_category(self, category: str) -> list[Master]:
        """
        Возвращает всех доступных мастеров с указанной специализацией.

        Это фильтр, а не ранжирование: возвращаются все подходящие записи,
        упорядоченные по ID для стабильного порядка обхода.
        Ошибки хранилища пробрасываются вызывающему коду.

        Args:
            category: Категория услуги заказа

        Returns:
            Список мастеров (возможно пустой)
        """
        rows = await self._db.fetch(
            f"""
            SELECT {_MASTER_COLUMNS}
            FROM masters
            WHERE specialization @> ARRAY[$1]::text[]
              AND is_available = TRUE
            ORDER BY id
            """,
            category,
        )

        await log_info(
            f"Найдено {len(rows)} доступных мастеров категории {category}",
            type_msg=TypeMsg.DEBUG,
        )

        return [self._row_to_master(row) for row in rows]

    @staticmethod
    def _row_to_master(row) -> Master:
        """Конвертирует строку БД в модель Master."""
        return Master(
            id=row["id"],
            name=row["name"],
            specialization=list(row["specialization"] or []),
            is_available=row["is_available"],
            last_latitude=row["last_latitude"],
            last_longitude=row["last_longitude"],
            updated_at=row["updated_at"],
        )
