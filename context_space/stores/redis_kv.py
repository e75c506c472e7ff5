"""
Redis-backed key-value store for short-term session records.
"""

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..exceptions import StoreReadFailure, StoreWriteFailure
from .base import KeyValueStore

logger = logging.getLogger(__name__)


class RedisKeyValueStore(KeyValueStore):
    """
    KeyValueStore over ``redis.asyncio``.

    The client must be created with ``decode_responses=True`` so values come
    back as ``str``.
    """

    def __init__(self, client: Redis, store_name: str = "short_term_kv"):
        super().__init__(store_name)
        self._client = client

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as e:
            raise StoreReadFailure(
                f"Failed to read key from {self.store_name}: {e}",
                store=self.store_name,
                context={"key": key},
            ) from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as e:
            raise StoreWriteFailure(
                f"Failed to write key to {self.store_name}: {e}",
                store=self.store_name,
                context={"key": key},
            ) from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
