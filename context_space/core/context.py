"""
Explicit store context.

A MemoryContext carries every store handle the pipeline needs. It is built
once (from live connections or from in-process stores) and passed to the
pipeline, resolver and escalation manager; there are no module-level
store clients.
"""

import logging
from dataclasses import dataclass, field
from functools import partial

from ..config import MemoryConfig
from ..constants import (
    ESCALATION_COLLECTION,
    IDENTITY_MAP_COLLECTION,
    LONG_TERM_COLLECTION,
    SHORT_TERM_VECTOR_COLLECTION,
)
from ..embeddings.service import EmbeddingProvider, MultiVectorEmbedder
from ..identity.hashing import Hasher, sha256_hex
from ..observability.health import (
    HealthChecker,
    HealthCheckResult,
    HealthStatus,
    check_mongodb_health,
    check_redis_health,
    check_vector_index_health,
)
from ..stores.identity_map import IdentityMap, MongoIdentityMap
from ..stores.in_memory import (
    InMemoryIdentityMap,
    InMemoryKeyValueStore,
    InMemoryTicketStore,
    InMemoryVectorIndex,
)
from ..stores.long_term import LongTermStore
from ..stores.mongo import MongoVectorIndex
from ..stores.redis_kv import RedisKeyValueStore
from ..stores.short_term import ShortTermStore
from ..stores.tickets import MongoTicketStore, TicketStore
from .connection import ConnectionManager

logger = logging.getLogger(__name__)


@dataclass
class MemoryContext:
    """Store handles and collaborators shared by one service instance."""

    config: MemoryConfig
    short_term: ShortTermStore
    long_term: LongTermStore
    identity_map: IdentityMap
    tickets: TicketStore
    embedder: MultiVectorEmbedder
    hasher: Hasher = sha256_hex
    health: HealthChecker = field(default_factory=HealthChecker)

    @classmethod
    def from_connection(
        cls,
        manager: ConnectionManager,
        embedder: MultiVectorEmbedder | None = None,
    ) -> "MemoryContext":
        """
        Wire the Redis/MongoDB store implementations over live connections.

        When no embedder is given, one is built around the auto-detected
        OpenAI / Azure OpenAI provider.
        """
        config = manager.config
        db = manager.mongo_db
        if embedder is None:
            provider = EmbeddingProvider(
                default_model=config.embedding_model,
                dimensions=config.embedding_dimensions,
                api_key=config.openai_api_key,
            )
            embedder = MultiVectorEmbedder(
                provider, model=config.embedding_model, dimensions=config.embedding_dimensions
            )

        short_term_index = MongoVectorIndex(
            db[SHORT_TERM_VECTOR_COLLECTION], store_name="short_term_vector"
        )
        long_term_index = MongoVectorIndex(db[LONG_TERM_COLLECTION], store_name="long_term")

        health = HealthChecker()
        health.register_check("mongodb", partial(check_mongodb_health, manager.mongo_client))
        health.register_check("redis", partial(check_redis_health, manager.redis))
        health.register_check(
            "short_term_vector",
            partial(check_vector_index_health, "short_term_vector", short_term_index),
        )
        health.register_check(
            "long_term", partial(check_vector_index_health, "long_term", long_term_index)
        )

        return cls(
            config=config,
            short_term=ShortTermStore(
                RedisKeyValueStore(manager.redis),
                short_term_index,
                ttl_seconds=config.session_ttl_seconds,
                max_messages=config.max_session_messages,
            ),
            long_term=LongTermStore(long_term_index),
            identity_map=MongoIdentityMap(db[IDENTITY_MAP_COLLECTION]),
            tickets=MongoTicketStore(db[ESCALATION_COLLECTION]),
            embedder=embedder,
            health=health,
        )

    @classmethod
    def in_memory(
        cls,
        embedder: MultiVectorEmbedder,
        config: MemoryConfig | None = None,
    ) -> "MemoryContext":
        """Context over in-process stores, for tests and local runs."""
        config = config or MemoryConfig()
        kv = InMemoryKeyValueStore()
        short_term_index = InMemoryVectorIndex("short_term_vector")
        long_term_index = InMemoryVectorIndex("long_term")

        async def check_kv() -> HealthCheckResult:
            ok = await kv.ping()
            return HealthCheckResult(
                name="short_term_kv",
                status=HealthStatus.HEALTHY if ok else HealthStatus.UNHEALTHY,
                message="In-memory session cache",
            )

        health = HealthChecker()
        health.register_check("short_term_kv", check_kv)
        health.register_check(
            "short_term_vector",
            partial(check_vector_index_health, "short_term_vector", short_term_index),
        )
        health.register_check(
            "long_term", partial(check_vector_index_health, "long_term", long_term_index)
        )

        return cls(
            config=config,
            short_term=ShortTermStore(
                kv,
                short_term_index,
                ttl_seconds=config.session_ttl_seconds,
                max_messages=config.max_session_messages,
            ),
            long_term=LongTermStore(long_term_index),
            identity_map=InMemoryIdentityMap(),
            tickets=InMemoryTicketStore(),
            embedder=embedder,
            health=health,
        )

    async def ensure_indexes(self) -> None:
        """Create the MongoDB indexes the stores rely on; no-op for in-process stores."""
        if isinstance(self.identity_map, MongoIdentityMap):
            await self.identity_map.ensure_indexes()
        if isinstance(self.tickets, MongoTicketStore):
            await self.tickets.ensure_indexes()
        dimensions = self.config.embedding_dimensions
        for index in (self.short_term.vector_index, self.long_term.vector_index):
            if isinstance(index, MongoVectorIndex):
                await index.ensure_search_index(dimensions)
        logger.info("Store indexes ensured")
