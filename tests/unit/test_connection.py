"""
Unit tests for ConnectionManager.

Tests connection initialization, error handling and shutdown.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from redis.exceptions import ConnectionError as RedisConnectionError

from context_space.config import MemoryConfig
from context_space.core.connection import ConnectionManager
from context_space.exceptions import InitializationError


@pytest.fixture
def connection_config():
    """Provide default configuration for ConnectionManager."""
    return MemoryConfig(
        mongo_uri="mongodb://localhost:27017",
        db_name="test_db",
        redis_url="redis://localhost:6379/0",
        max_pool_size=10,
        min_pool_size=1,
    )


@pytest.fixture
def mock_mongo_client():
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    return client


@pytest.fixture
def mock_redis_client():
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    return client


class TestConnectionManagerInitialize:
    @pytest.mark.asyncio
    async def test_initialize_success(
        self, connection_config, mock_mongo_client, mock_redis_client
    ):
        with patch(
            "context_space.core.connection.AsyncIOMotorClient", return_value=mock_mongo_client
        ) as motor_cls, patch(
            "context_space.core.connection.redis.from_url", return_value=mock_redis_client
        ) as from_url:
            manager = ConnectionManager(connection_config)
            await manager.initialize()

        assert manager.initialized
        assert manager.mongo_client is mock_mongo_client
        assert manager.redis is mock_redis_client
        mock_mongo_client.admin.command.assert_awaited_once_with("ping")
        mock_redis_client.ping.assert_awaited_once()
        assert motor_cls.call_args.kwargs["maxPoolSize"] == 10
        assert motor_cls.call_args.kwargs["minPoolSize"] == 1
        from_url.assert_called_once_with("redis://localhost:6379/0", decode_responses=True)

    @pytest.mark.asyncio
    async def test_initialize_twice_is_noop(
        self, connection_config, mock_mongo_client, mock_redis_client
    ):
        with patch(
            "context_space.core.connection.AsyncIOMotorClient", return_value=mock_mongo_client
        ) as motor_cls, patch(
            "context_space.core.connection.redis.from_url", return_value=mock_redis_client
        ):
            manager = ConnectionManager(connection_config)
            await manager.initialize()
            await manager.initialize()

        assert motor_cls.call_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [ConnectionFailure("refused"), ServerSelectionTimeoutError("timeout")]
    )
    async def test_mongo_failure(self, connection_config, mock_mongo_client, error):
        mock_mongo_client.admin.command = AsyncMock(side_effect=error)

        with patch(
            "context_space.core.connection.AsyncIOMotorClient", return_value=mock_mongo_client
        ):
            manager = ConnectionManager(connection_config)
            with pytest.raises(InitializationError) as exc_info:
                await manager.initialize()

        assert "Failed to connect to MongoDB" in str(exc_info.value)
        assert exc_info.value.context["error_type"] == type(error).__name__
        assert exc_info.value.db_name == "test_db"
        assert not manager.initialized

    @pytest.mark.asyncio
    async def test_redis_failure_closes_mongo(
        self, connection_config, mock_mongo_client, mock_redis_client
    ):
        mock_redis_client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))

        with patch(
            "context_space.core.connection.AsyncIOMotorClient", return_value=mock_mongo_client
        ), patch(
            "context_space.core.connection.redis.from_url", return_value=mock_redis_client
        ):
            manager = ConnectionManager(connection_config)
            with pytest.raises(InitializationError) as exc_info:
                await manager.initialize()

        assert "Failed to connect to Redis" in str(exc_info.value)
        mock_mongo_client.close.assert_called_once()
        assert not manager.initialized


class TestConnectionManagerShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_closes_clients(
        self, connection_config, mock_mongo_client, mock_redis_client
    ):
        with patch(
            "context_space.core.connection.AsyncIOMotorClient", return_value=mock_mongo_client
        ), patch(
            "context_space.core.connection.redis.from_url", return_value=mock_redis_client
        ):
            manager = ConnectionManager(connection_config)
            await manager.initialize()
            await manager.shutdown()

        mock_mongo_client.close.assert_called_once()
        mock_redis_client.aclose.assert_awaited_once()
        assert not manager.initialized

    @pytest.mark.asyncio
    async def test_shutdown_without_initialize(self, connection_config):
        manager = ConnectionManager(connection_config)
        await manager.shutdown()
        assert not manager.initialized

    def test_clients_require_initialize(self, connection_config):
        manager = ConnectionManager(connection_config)
        with pytest.raises(RuntimeError):
            _ = manager.mongo_db
