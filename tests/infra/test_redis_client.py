# tests/infra/test_redis_client.py
"""
Тесты для клиента Redis.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from master_matching.infra.redis_client import RedisClient


class TestRedisClient:
    """Тесты для RedisClient."""

    @pytest.fixture
    def redis_client(self) -> RedisClient:
        """Создаёт экземпляр RedisClient для тестов."""
        # Сбрасываем синглтон для каждого теста
        RedisClient._instance = None
        RedisClient._client = None
        return RedisClient()

    @pytest.fixture
    def connected(self, redis_client: RedisClient) -> RedisClient:
        redis_client._client = AsyncMock()
        return redis_client

    def test_singleton(self) -> None:
        """Проверяет паттерн Singleton."""
        RedisClient._instance = None
        assert RedisClient() is RedisClient()

    def test_client_not_initialized(self, redis_client: RedisClient) -> None:
        """Проверяет ошибку при обращении к неинициализированному клиенту."""
        with pytest.raises(RuntimeError, match="Redis клиент не инициализирован"):
            _ = redis_client.client
        assert redis_client.is_connected is False

    def test_make_key(self, redis_client: RedisClient) -> None:
        """Проверяет формирование ключа с namespace."""
        assert redis_client._make_key("lock:order-1") == "matching:lock:order-1"

    @pytest.mark.asyncio
    async def test_connect(self, redis_client: RedisClient) -> None:
        """Проверяет подключение к Redis."""
        mock_redis = AsyncMock()
        mock_redis.ping = AsyncMock(return_value=True)

        with patch("redis.asyncio.from_url", return_value=mock_redis):
            await redis_client.connect(url="redis://localhost:6379/0", namespace="custom")

        mock_redis.ping.assert_awaited_once()
        assert redis_client.is_connected is True
        assert redis_client._make_key("k") == "custom:k"

    @pytest.mark.asyncio
    async def test_connect_already_connected(self, connected: RedisClient) -> None:
        """Повторное подключение пропускается."""
        with patch("redis.asyncio.from_url") as mock_from_url:
            await connected.connect(url="redis://localhost:6379/0")

        mock_from_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_disconnect(self, connected: RedisClient) -> None:
        """Проверяет отключение от Redis."""
        mock_redis = connected._client

        await connected.disconnect()

        mock_redis.aclose.assert_awaited_once()
        assert connected.is_connected is False

    @pytest.mark.asyncio
    async def test_set_with_ttl_and_nx(self, connected: RedisClient) -> None:
        connected._client.set = AsyncMock(return_value=None)

        assert await connected.set("k", "v", ttl=10, nx=True) is False
        connected._client.set.assert_awaited_once_with("matching:k", "v", ex=10, nx=True)


class TestLocks:
    """Тесты блокировок."""

    @pytest.fixture
    def connected(self) -> RedisClient:
        RedisClient._instance = None
        client = RedisClient()
        client._client = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_acquire_returns_token(self, connected: RedisClient) -> None:
        connected._client.set = AsyncMock(return_value=True)

        token = await connected.acquire_lock("lock:order-1", 60)

        assert token
        args, kwargs = connected._client.set.call_args
        assert args == ("matching:lock:order-1", token)
        assert kwargs == {"ex": 60, "nx": True}

    @pytest.mark.asyncio
    async def test_acquire_held(self, connected: RedisClient) -> None:
        connected._client.set = AsyncMock(return_value=None)

        assert await connected.acquire_lock("lock:order-1", 60) is None

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, connected: RedisClient) -> None:
        connected._client.set = AsyncMock(return_value=True)

        first = await connected.acquire_lock("a", 1)
        second = await connected.acquire_lock("a", 1)

        assert first != second

    @pytest.mark.asyncio
    async def test_release_checks_owner(self, connected: RedisClient) -> None:
        connected._client.eval = AsyncMock(return_value=1)

        assert await connected.release_lock("lock:order-1", "token-1") is True

        script, numkeys, key, token = connected._client.eval.call_args.args
        assert "redis.call(\"del\"" in script
        assert (numkeys, key, token) == (1, "matching:lock:order-1", "token-1")

    @pytest.mark.asyncio
    async def test_release_foreign_lock(self, connected: RedisClient) -> None:
        connected._client.eval = AsyncMock(return_value=0)

        assert await connected.release_lock("lock:order-1", "stale") is False


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self) -> None:
        RedisClient._instance = None
        client = RedisClient()
        client._client = AsyncMock()
        client._client.ping = AsyncMock(return_value=True)

        assert await client.health_check() is True

    @pytest.mark.asyncio
    async def test_not_connected(self) -> None:
        RedisClient._instance = None
        RedisClient._client = None

        assert await RedisClient().health_check() is False
