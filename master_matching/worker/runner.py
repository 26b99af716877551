# master_matching/worker/runner.py
"""
Запускалка воркеров подбора мастера.
"""

from __future__ import annotations

import asyncio
from typing import List

from master_matching.common.constants import TypeMsg
from master_matching.common.logger import log_error, log_info
from master_matching.infra.database import close_db, init_db
from master_matching.infra.event_bus import close_event_bus, init_event_bus
from master_matching.infra.redis_client import close_redis, init_redis
from master_matching.worker.base import BaseWorker
from master_matching.worker.matching import MatchingWorker
from master_matching.worker.requeue import RequeueWorker


def build_workers() -> List[BaseWorker]:
    """Создаёт воркеры процесса."""
    return [
        MatchingWorker(),
        RequeueWorker(),
    ]


async def run_workers(init_infra: bool = True) -> None:
    """
    Запускает MatchingWorker и RequeueWorker и ждёт отмены.

    Args:
        init_infra: Если True, инициализирует инфраструктуру (БД, Redis, RabbitMQ).
                    В режиме all main.py уже инициализировал её и передаёт False.

    Note:
        MATCHING_WORKER_INSTANCES_COUNT из конфига используется для горизонтального
        масштабирования через Docker Compose (количество контейнеров).
    """
    await log_info("Запуск воркеров подбора мастера...", type_msg=TypeMsg.INFO)

    if init_infra:
        await log_info("Инициализация инфраструктуры для воркеров...", type_msg=TypeMsg.DEBUG)
        await init_db()
        await init_redis()
        await init_event_bus()

    workers = build_workers()

    try:
        for worker in workers:
            await worker.start()

        await log_info(f"Запущено {len(workers)} воркеров", type_msg=TypeMsg.INFO)

        while True:
            await asyncio.sleep(1)

    except asyncio.CancelledError:
        await log_info("Получен сигнал остановки", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка воркеров: {e}", exc_info=True)
        raise
    finally:
        for worker in workers:
            await worker.stop()

        if init_infra:
            await close_event_bus()
            await close_redis()
            await close_db()

        await log_info("Воркеры остановлены", type_msg=TypeMsg.INFO)


def main() -> None:
    """Точка входа."""
    try:
        asyncio.run(run_workers())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
