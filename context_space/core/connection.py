"""
Connection management for the memory service.

Opens and verifies the MongoDB (identity map, vector indexes, tickets) and
Redis (session cache) clients, and closes them on shutdown. Clients are
created once per process and handed to a MemoryContext; nothing here is
global.
"""

import logging
import time

import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from redis.exceptions import RedisError

from ..config import MemoryConfig
from ..exceptions import InitializationError
from ..observability import get_logger as get_contextual_logger
from ..observability import record_operation

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)

MAX_IDLE_TIME_MS = 45000


class ConnectionManager:
    """
    Manages the MongoDB and Redis client lifecycle.

    Example:
        manager = ConnectionManager(MemoryConfig())
        await manager.initialize()
        ...
        await manager.shutdown()
    """

    def __init__(self, config: MemoryConfig) -> None:
        self.config = config
        self._mongo_client: AsyncIOMotorClient | None = None
        self._mongo_db: AsyncIOMotorDatabase | None = None
        self._redis: redis.Redis | None = None
        self._initialized: bool = False

    async def initialize(self) -> None:
        """
        Connect to MongoDB and Redis and verify both with a ping.

        Raises:
            InitializationError: If either store cannot be reached
        """
        if self._initialized:
            logger.warning("ConnectionManager already initialized. Skipping re-initialization.")
            return

        start_time = time.time()
        config = self.config
        contextual_logger.info(
            "Initializing store connections",
            extra={
                "db_name": config.db_name,
                "max_pool_size": config.max_pool_size,
                "min_pool_size": config.min_pool_size,
            },
        )

        try:
            self._mongo_client = AsyncIOMotorClient(
                config.mongo_uri,
                serverSelectionTimeoutMS=config.server_selection_timeout_ms,
                appname="context-space",
                maxPoolSize=config.max_pool_size,
                minPoolSize=config.min_pool_size,
                maxIdleTimeMS=MAX_IDLE_TIME_MS,
                retryWrites=True,
                retryReads=True,
            )
            await self._mongo_client.admin.command("ping")
            self._mongo_db = self._mongo_client[config.db_name]
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            duration_ms = (time.time() - start_time) * 1000
            record_operation("connection.initialize", duration_ms, success=False, store="mongodb")
            contextual_logger.critical(
                "MongoDB connection failed",
                extra={"error_type": type(e).__name__, "error": str(e)},
                exc_info=True,
            )
            raise InitializationError(
                f"Failed to connect to MongoDB: {e}",
                mongo_uri=config.mongo_uri,
                db_name=config.db_name,
                context={"error_type": type(e).__name__},
            ) from e

        try:
            self._redis = redis.from_url(config.redis_url, decode_responses=True)
            await self._redis.ping()
        except (RedisError, OSError) as e:
            duration_ms = (time.time() - start_time) * 1000
            record_operation("connection.initialize", duration_ms, success=False, store="redis")
            contextual_logger.critical(
                "Redis connection failed",
                extra={"error_type": type(e).__name__, "error": str(e)},
                exc_info=True,
            )
            self._mongo_client.close()
            self._mongo_client = None
            self._mongo_db = None
            raise InitializationError(
                f"Failed to connect to Redis: {e}",
                context={"error_type": type(e).__name__},
            ) from e

        self._initialized = True
        duration_ms = (time.time() - start_time) * 1000
        record_operation("connection.initialize", duration_ms, success=True)
        contextual_logger.info(
            "Store connections initialized",
            extra={"db_name": config.db_name, "duration_ms": round(duration_ms, 2)},
        )

    async def shutdown(self) -> None:
        """
        Close both clients. Safe to call more than once.
        """
        if not self._initialized:
            return

        if self._mongo_client:
            self._mongo_client.close()
        if self._redis is not None:
            await self._redis.aclose()

        self._initialized = False
        self._mongo_client = None
        self._mongo_db = None
        self._redis = None
        contextual_logger.info("Store connections closed")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("ConnectionManager not initialized. Call initialize() first.")

    @property
    def mongo_client(self) -> AsyncIOMotorClient:
        self._require_initialized()
        return self._mongo_client

    @property
    def mongo_db(self) -> AsyncIOMotorDatabase:
        self._require_initialized()
        return self._mongo_db

    @property
    def redis(self) -> redis.Redis:
        self._require_initialized()
        return self._redis

    @property
    def initialized(self) -> bool:
        """Check if connections are initialized."""
        return self._initialized
