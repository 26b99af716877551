# master_matching/services/matching_api/app.py
"""
FastAPI приложение Matching API.
Операционный интерфейс: здоровье сервиса, состояние подбора, ручной повтор.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Depends, FastAPI, HTTPException, status

from master_matching.common.constants import TypeMsg
from master_matching.common.logger import log_info
from master_matching.config import settings
from master_matching.core.orders.service import OrderService
from master_matching.infra.database import DatabaseManager
from master_matching.infra.event_bus import EventBus
from master_matching.infra.redis_client import RedisClient
from master_matching.services.matching_api.dependencies import (
    close_dependencies,
    get_db,
    get_event_bus,
    get_order_service,
    get_redis,
    init_dependencies,
)
from master_matching.services.matching_api.schemas import (
    HealthStatus,
    OrderMatchResponse,
    RequeueRequest,
)

SERVICE_NAME = "matching_api"


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    await log_info("Matching API запускается...", type_msg=TypeMsg.INFO)
    await init_dependencies()

    yield

    await close_dependencies()
    await log_info("Matching API остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

app = FastAPI(
    title="Matching API",
    description="Подбор ближайшего мастера для заказа",
    version=settings.system.VERSION,
    lifespan=lifespan,
)


# =============================================================================
# HEALTH CHECK
# =============================================================================

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check(
    db: DatabaseManager = Depends(get_db),
    redis: RedisClient = Depends(get_redis),
    event_bus: EventBus = Depends(get_event_bus),
) -> HealthStatus:
    """Проверка здоровья сервиса и его зависимостей."""
    checks = {
        "postgres": db.health_check,
        "redis": redis.health_check,
        "rabbitmq": event_bus.health_check,
    }

    deps: dict[str, str] = {}
    for name, check in checks.items():
        try:
            deps[name] = "healthy" if await check() else "unhealthy"
        except Exception:
            deps[name] = "unhealthy"

    overall = "healthy" if all(v == "healthy" for v in deps.values()) else "degraded"

    return HealthStatus(
        service=SERVICE_NAME,
        status=overall,
        version=settings.system.VERSION,
        dependencies=deps,
    )


# =============================================================================
# ORDERS API
# =============================================================================

@app.get(
    "/api/v1/orders/{order_id}/match",
    response_model=OrderMatchResponse,
    tags=["Orders"],
    responses={404: {"description": "Заказ не найден"}},
)
async def get_order_match(
    order_id: str,
    service: OrderService = Depends(get_order_service),
) -> OrderMatchResponse:
    """Текущее состояние подбора мастера для заказа."""
    order = await service.get_order(order_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Заказ не найден",
        )
    return OrderMatchResponse.from_order(order)


@app.post(
    "/api/v1/orders/{order_id}/requeue",
    response_model=OrderMatchResponse,
    tags=["Orders"],
    responses={
        404: {"description": "Заказ не найден"},
        409: {"description": "Повтор запрещён политикой"},
    },
)
async def requeue_order(
    order_id: str,
    request: Optional[RequeueRequest] = None,
    service: OrderService = Depends(get_order_service),
) -> OrderMatchResponse:
    """Ручной возврат заказа в pending (ORDER_REQUEUED публикуется автоматически)."""
    force = request.force if request is not None else False
    decision = await service.requeue(order_id, force=force)

    if decision.order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Заказ не найден",
        )

    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=decision.reason,
        )

    return OrderMatchResponse.from_order(decision.order)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "master_matching.services.matching_api.app:app",
        host=settings.deployment.MATCHING_API_HOST,
        port=settings.deployment.MATCHING_API_PORT,
    )
