#!/usr/bin/env python3
# main.py
"""
Главная точка входа сервиса подбора мастера.
Запускает воркеры, HTTP API или всё вместе в зависимости от аргументов.
"""

from __future__ import annotations

import asyncio
import signal
import sys

from master_matching.common.constants import TypeMsg
from master_matching.common.logger import log_error, log_info, setup_logging
from master_matching.config import settings
from master_matching.infra.database import close_db, init_db
from master_matching.infra.event_bus import close_event_bus, init_event_bus
from master_matching.infra.redis_client import close_redis, init_redis


VALID_MODES = ("worker", "api", "all")

_shutdown_event: asyncio.Event | None = None
_running_tasks: list[asyncio.Task] = []


def setup_signal_handlers() -> None:
    """Настраивает обработчики SIGINT/SIGTERM для graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        if _shutdown_event and not _shutdown_event.is_set():
            print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
            _shutdown_event.set()
            for task in _running_tasks:
                if not task.done():
                    task.cancel()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def init_infrastructure() -> None:
    """Инициализирует все подключения к инфраструктуре."""
    await log_info("Инициализация инфраструктуры...", type_msg=TypeMsg.INFO)

    await init_db()
    await init_redis()
    await init_event_bus()

    await log_info("Инфраструктура инициализирована", type_msg=TypeMsg.INFO)


async def close_infrastructure() -> None:
    """Закрывает все подключения."""
    await log_info("Закрытие подключений...", type_msg=TypeMsg.INFO)

    await close_event_bus()
    await close_redis()
    await close_db()

    await log_info("Подключения закрыты", type_msg=TypeMsg.INFO)


async def run_worker() -> None:
    """Запускает MatchingWorker и RequeueWorker."""
    from master_matching.worker.runner import run_workers

    # Инфраструктура уже инициализирована в main()
    await run_workers(init_infra=False)


async def run_api() -> None:
    """Запускает Matching API (uvicorn внутри текущего event loop)."""
    import uvicorn

    await log_info(
        f"Запуск Matching API на порту {settings.deployment.MATCHING_API_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "master_matching.services.matching_api.app:app",
        host=settings.deployment.MATCHING_API_HOST,
        port=settings.deployment.MATCHING_API_PORT,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    # Сигналы обрабатывает main.py
    server.install_signal_handlers = lambda: None

    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Matching API: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


def resolve_mode(mode: str | None) -> str:
    """Режим из аргумента или COMPONENT_MODE (по умолчанию all)."""
    if mode is None:
        mode = settings.system.COMPONENT_MODE or "all"
    mode = mode.lower()
    if mode not in VALID_MODES:
        raise ValueError(f"Неизвестный режим '{mode}'. Допустимые: {', '.join(VALID_MODES)}")
    return mode


async def main(mode: str | None = None) -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (worker, api, all).
              Если None, берётся из COMPONENT_MODE.
    """
    global _running_tasks

    setup_logging()
    setup_signal_handlers()

    mode = resolve_mode(mode)

    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION}: запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    try:
        await init_infrastructure()

        if mode == "worker":
            _running_tasks = [asyncio.create_task(run_worker())]
        elif mode == "api":
            _running_tasks = [asyncio.create_task(run_api())]
        else:
            _running_tasks = [
                asyncio.create_task(run_worker()),
                asyncio.create_task(run_api()),
            ]

        await asyncio.gather(*_running_tasks, return_exceptions=True)

    except asyncio.CancelledError:
        await log_info("Отмена всех задач...", type_msg=TypeMsg.INFO)
        for task in _running_tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*_running_tasks, return_exceptions=True)
    except Exception as e:
        await log_error(f"Критическая ошибка при запуске: {e}", exc_info=True)
        raise
    finally:
        await close_infrastructure()


def print_usage() -> None:
    """Выводит справку по использованию."""
    print("""
Master Matching: подбор ближайшего мастера для заказа

Использование:
    python main.py [mode]

Режимы:
    worker    MatchingWorker + RequeueWorker (RabbitMQ)
    api       Matching API (:8091)
    all       Всё в одном процессе (по умолчанию)

Без аргумента режим берётся из COMPONENT_MODE.
    """)


if __name__ == "__main__":
    mode = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        if arg not in VALID_MODES:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)
        mode = arg

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
