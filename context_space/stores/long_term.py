"""
Long-term memory tier: an insert-only vector index of turn summaries.
"""

import logging

from ..constants import SLA_LONG_TERM_QUERY_MS, SLA_LONG_TERM_WRITE_MS
from ..core.types import LongTermMemoryPoint
from ..observability.metrics import timed_operation
from .base import VectorIndex

logger = logging.getLogger(__name__)


class LongTermStore:
    """Persistent archive of LongTermMemoryPoints."""

    def __init__(self, vector_index: VectorIndex):
        self.vector_index = vector_index

    @timed_operation("long_term.insert", budget_ms=SLA_LONG_TERM_WRITE_MS)
    async def insert(self, point: LongTermMemoryPoint) -> None:
        await self.vector_index.insert(point.point_id, point.intent_vector, point.payload())
        logger.debug(f"Archived long-term point {point.point_id}")

    @timed_operation("long_term.query", budget_ms=SLA_LONG_TERM_QUERY_MS)
    async def query_similar(
        self,
        vector: list[float],
        top_k: int,
        pseudo_user_id: str | None = None,
    ) -> list[LongTermMemoryPoint]:
        """Nearest archived points in relevance order, optionally for one identity."""
        filter = {"pseudo_user_id": pseudo_user_id} if pseudo_user_id else None
        matches = await self.vector_index.query(vector, top_k, filter=filter)
        points = []
        for match in matches:
            try:
                points.append(LongTermMemoryPoint.from_payload(match.payload, match.vector))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed long-term point {match.id}: {e}")
        return points
