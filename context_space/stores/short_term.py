"""
Short-term memory tier.

A session's recent turns live in the key-value store under a sliding
expiry; the latest turn of every session is also kept as one point in a
vector index for nearest-neighbour recall across sessions.
"""

import logging

from ..constants import (
    DEFAULT_MAX_SESSION_MESSAGES,
    DEFAULT_SESSION_TTL_SECONDS,
    SLA_KV_WRITE_MS,
    SLA_VECTOR_QUERY_MS,
    SLA_VECTOR_WRITE_MS,
)
from ..core.types import Message, ShortTermRecord, ShortTermVectorPoint, session_key
from ..exceptions import StoreReadFailure
from ..observability.metrics import timed_operation
from .base import KeyValueStore, VectorIndex

logger = logging.getLogger(__name__)


class ShortTermStore:
    """
    Session cache plus short-term vector index.

    Args:
        kv: Key-value store holding serialized ShortTermRecords
        vector_index: Index holding one ShortTermVectorPoint per session
        ttl_seconds: Expiry applied (and refreshed) on every session write
        max_messages: Bound on the messages kept per session
    """

    def __init__(
        self,
        kv: KeyValueStore,
        vector_index: VectorIndex,
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        max_messages: int = DEFAULT_MAX_SESSION_MESSAGES,
    ):
        self.kv = kv
        self.vector_index = vector_index
        self.ttl_seconds = ttl_seconds
        self.max_messages = max_messages

    async def get_session(self, session_id: str) -> ShortTermRecord | None:
        raw = await self.kv.get(session_key(session_id))
        if raw is None:
            return None
        try:
            return ShortTermRecord.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            raise StoreReadFailure(
                f"Corrupt session record: {e}",
                store=self.kv.store_name,
                context={"session_id": session_id},
            ) from e

    @timed_operation("short_term.write_session", budget_ms=SLA_KV_WRITE_MS)
    async def save_session(self, session_id: str, record: ShortTermRecord) -> None:
        await self.kv.set(session_key(session_id), record.to_json(), self.ttl_seconds)
        logger.debug(f"Stored {len(record.messages)} message(s) for {session_id}")

    async def append_message(
        self,
        session_id: str,
        existing: ShortTermRecord | None,
        message: Message,
        intent_vector: list[float],
        frustration_level: float,
    ) -> ShortTermRecord:
        """
        Append ``message`` to the session and write it back.

        ``existing`` is the record read earlier in the same request; it is
        not modified.
        """
        record = ShortTermRecord(
            messages=list(existing.messages) if existing else [],
            intent_vector=list(intent_vector),
            frustration_level=frustration_level,
        )
        record.append(message, self.max_messages)
        await self.save_session(session_id, record)
        return record

    @timed_operation("short_term.upsert_vector", budget_ms=SLA_VECTOR_WRITE_MS)
    async def upsert_vector_point(self, point: ShortTermVectorPoint) -> None:
        await self.vector_index.upsert(point.point_id, point.intent_vector, point.payload())

    @timed_operation("short_term.query_vectors", budget_ms=SLA_VECTOR_QUERY_MS)
    async def query_similar(self, vector: list[float], top_k: int) -> list[ShortTermVectorPoint]:
        """Nearest session points, most recent first."""
        matches = await self.vector_index.query(vector, top_k)
        points = []
        for match in matches:
            try:
                points.append(ShortTermVectorPoint.from_payload(match.payload, match.vector))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed short-term point {match.id}: {e}")
        points.sort(key=lambda p: p.timestamp, reverse=True)
        return points
