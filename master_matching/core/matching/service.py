# master_matching/core/matching/service.py
"""
Движок подбора мастера.

Один вызов process_order обрабатывает один заказ: загружает его,
получает доступных мастеров категории, выбирает ближайшего в радиусе
и атомарно фиксирует результат (assigned / no_master_found / error_matching).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional

from master_matching.common.constants import OrderStatus, TypeMsg
from master_matching.common.logger import log_error, log_info, log_warning
from master_matching.core.masters.repository import MasterRepository
from master_matching.core.matching.models import MatchResult
from master_matching.core.matching.selection import rank_candidates
from master_matching.core.orders.models import Order
from master_matching.core.orders.repository import OrderRepository
from master_matching.infra.event_bus import DomainEvent, EventBus, EventTypes
from master_matching.infra.redis_client import RedisClient


def describe_error(error: BaseException) -> str:
    """Текст ошибки для записи в заказ (никогда не пустой)."""
    message = str(error).strip()
    return message or type(error).__name__


class MatchingService:
    """
    Сервис матчинга заказов с мастерами.

    Все записи в заказ условные (только из pending), поэтому повторная
    доставка события безопасна. Блокировка в Redis лишь избавляет
    от дублирующих запросов кандидатов при параллельной доставке.
    """

    def __init__(
        self,
        orders: OrderRepository,
        masters: MasterRepository,
        redis: Optional[RedisClient] = None,
        event_bus: Optional[EventBus] = None,
        radius_km: Optional[float] = None,
        claim_master: Optional[bool] = None,
        lock_ttl: Optional[int] = None,
        distance_decimals: Optional[int] = None,
    ) -> None:
        """
        Инициализация сервиса.

        Args:
            orders: Репозиторий заказов
            masters: Репозиторий мастеров
            redis: Клиент Redis для блокировки обработки (None: без блокировки)
            event_bus: Шина событий для публикации результатов (None: без событий)
            radius_km: Радиус поиска (из конфига если None)
            claim_master: Занимать ли мастера при назначении (из конфига если None)
            lock_ttl: TTL блокировки обработки, секунды (из конфига если None)
            distance_decimals: Точность сохраняемого расстояния (из конфига если None)
        """
        from master_matching.config import settings

        self._orders = orders
        self._masters = masters
        self._redis = redis
        self._event_bus = event_bus

        matching = settings.matching
        self._radius_km = matching.SEARCH_RADIUS_KM if radius_km is None else radius_km
        self._claim_master = matching.CLAIM_MASTER_ON_ASSIGN if claim_master is None else claim_master
        self._lock_ttl = matching.PROCESSING_LOCK_TTL if lock_ttl is None else lock_ttl
        self._distance_decimals = (
            matching.DISTANCE_DECIMALS if distance_decimals is None else distance_decimals
        )

    @property
    def radius_km(self) -> float:
        return self._radius_km

    @staticmethod
    def _lock_key(order_id: str) -> str:
        return f"lock:{order_id}"

    async def process_order(self, order_id: str) -> MatchResult:
        """
        Обрабатывает заказ.

        Исключения наружу не выбрасываются: любая ошибка загрузки
        кандидатов или записи результата превращается в error_matching.

        Args:
            order_id: ID заказа

        Returns:
            MatchResult (для пропуска status=None)
        """
        token: Optional[str] = None

        if self._redis is not None:
            try:
                token = await self._redis.acquire_lock(self._lock_key(order_id), self._lock_ttl)
            except Exception as e:
                # Redis недоступен: условные записи всё равно защищают заказ
                await log_warning(f"Блокировка заказа {order_id} недоступна: {e}")
            else:
                if token is None:
                    await log_info(
                        f"Заказ {order_id} уже обрабатывается другим обработчиком",
                        type_msg=TypeMsg.DEBUG,
                    )
                    return MatchResult.skipped(order_id, "locked")

        try:
            return await self._match(order_id)
        finally:
            if token is not None:
                try:
                    await self._redis.release_lock(self._lock_key(order_id), token)
                except Exception as e:
                    await log_warning(f"Не удалось снять блокировку заказа {order_id}: {e}")

    async def _match(self, order_id: str) -> MatchResult:
        """Один проход подбора без блокировки."""
        try:
            order = await self._orders.get_by_id(order_id)
        except Exception as e:
            return await self._fail(order_id, e)

        if order is None:
            await log_warning(f"Заказ {order_id} не найден, пропускаем")
            return MatchResult.skipped(order_id, "not_found")

        if not order.is_pending:
            await log_info(
                f"Заказ {order_id} уже в статусе {order.status.value}, пропускаем",
                type_msg=TypeMsg.DEBUG,
            )
            return MatchResult.skipped(order_id, "not_pending")

        client = order.client_location
        if client is None:
            await log_warning(f"У заказа {order_id} нет корректной локации клиента, пропускаем")
            return MatchResult.skipped(order_id, "no_location")

        try:
            masters = await self._masters.find_available_by_category(order.category)
            candidates = rank_candidates(client, order.category, masters, self._radius_km)

            if not candidates:
                if not await self._orders.mark_no_master_found(order_id):
                    return await self._already_processed(order_id)
                result = MatchResult.unmatched(order_id)
            else:
                commit = await self._orders.commit_assignment(
                    order_id,
                    candidates,
                    claim_master=self._claim_master,
                    distance_decimals=self._distance_decimals,
                )
                if not commit.applied:
                    return await self._already_processed(order_id)

                if commit.status == OrderStatus.ASSIGNED and commit.candidate is not None:
                    chosen = replace(
                        commit.candidate,
                        distance_km=round(commit.candidate.distance_km, self._distance_decimals),
                    )
                    result = MatchResult.assigned(order_id, chosen)
                else:
                    result = MatchResult.unmatched(order_id)
        except Exception as e:
            return await self._fail(order_id, e)

        if result.status == OrderStatus.ASSIGNED:
            await log_info(
                f"Заказ {order_id}: назначен мастер {result.candidate.master_id} "
                f"({result.candidate.distance_km} км)",
                type_msg=TypeMsg.INFO,
            )
        else:
            await log_info(
                f"Заказ {order_id}: нет доступных мастеров категории {order.category} "
                f"в радиусе {self._radius_km} км",
                type_msg=TypeMsg.INFO,
            )

        await self._publish(result, order)
        return result

    async def _already_processed(self, order_id: str) -> MatchResult:
        await log_info(
            f"Заказ {order_id} завершён другим обработчиком, запись пропущена",
            type_msg=TypeMsg.DEBUG,
        )
        return MatchResult.skipped(order_id, "already_processed")

    async def _fail(self, order_id: str, error: BaseException) -> MatchResult:
        """Фиксирует error_matching. Сбой самой записи только логируется."""
        message = describe_error(error)
        await log_error(f"Ошибка подбора мастера для заказа {order_id}: {message}", exc_info=True)

        result = MatchResult.error(order_id, message)
        try:
            applied = await self._orders.mark_error(order_id, message)
        except Exception as e:
            await log_error(f"Не удалось записать error_matching для заказа {order_id}: {describe_error(e)}")
            return result

        if applied:
            await self._publish(result)
        return result

    async def _publish(self, result: MatchResult, order: Optional[Order] = None) -> None:
        """Публикует результат подбора. Ошибки публикации только логируются."""
        if self._event_bus is None:
            return

        payload: dict[str, Any] = {"order_id": result.order_id}
        if order is not None:
            payload["category"] = order.category

        if result.status == OrderStatus.ASSIGNED:
            event_type = EventTypes.ORDER_MASTER_ASSIGNED
            payload.update(
                master_id=result.candidate.master_id,
                master_name=result.candidate.name,
                distance_km=result.candidate.distance_km,
            )
        elif result.status == OrderStatus.NO_MASTER_FOUND:
            event_type = EventTypes.ORDER_NO_MASTER_FOUND
        else:
            event_type = EventTypes.ORDER_MATCHING_FAILED
            payload["error_message"] = result.error_message

        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type} для заказа {result.order_id}: {e}")
