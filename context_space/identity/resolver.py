"""
Identity resolution.

Decides whether an incoming session belongs to an already known pseudo
identity by combining weighted similarity signals against the historical
candidates read by the pipeline, and maintains the identity map.
"""

import logging
import math
import secrets
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..constants import (
    DEFAULT_PSEUDO_ID_LIST_LIMIT,
    MATCH_THRESHOLD,
    PSEUDO_ID_GROUPS,
    SLA_IDENTITY_RESOLUTION_MS,
)
from ..core.types import LinkedSession, MultiVectorEmbedding, SessionMetadata
from ..exceptions import ResolutionFailure, StoreReadFailure, StoreWriteFailure
from ..observability.metrics import record_operation
from ..stores.identity_map import IdentityMap
from .hashing import Hasher, sha256_hex
from .scoring import DEFAULT_SIGNALS, HistoricalCandidate, MatchInputs, SimilaritySignal

logger = logging.getLogger(__name__)

def generate_pseudo_user_id() -> str:
    """
    New pseudo user id: uppercase hex in 8-4-4-4-12 groups, drawn from the
    operating system's CSPRNG.
    """
    raw = secrets.token_hex(sum(PSEUDO_ID_GROUPS) // 2).upper()
    groups = []
    start = 0
    for size in PSEUDO_ID_GROUPS:
        groups.append(raw[start : start + size])
        start += size
    return "-".join(groups)


@dataclass
class MatchScore:
    """Per-signal values and their weighted combination."""

    signals: dict[str, float] = field(default_factory=dict)
    combined: float = 0.0

    def exceeds(self, threshold: float) -> bool:
        return self.combined > threshold


class IdentityResolver:
    """
    Resolves sessions to pseudo identities and keeps the identity map.

    Args:
        identity_map: Store of pseudo identity -> linked channel identities
        hasher: One-way hash applied to raw channel user ids
        signals: Weighted similarity signals (defaults to vector, metadata,
            behavior and identifier overlap)
        threshold: Combined score that must be strictly exceeded to reuse
            an existing identity
    """

    def __init__(
        self,
        identity_map: IdentityMap,
        hasher: Hasher = sha256_hex,
        signals: Sequence[SimilaritySignal] = DEFAULT_SIGNALS,
        threshold: float = MATCH_THRESHOLD,
    ):
        total_weight = sum(s.weight for s in signals)
        if not math.isclose(total_weight, 1.0, abs_tol=1e-9):
            raise ValueError(f"Signal weights must sum to 1.0, got {total_weight}")
        self.identity_map = identity_map
        self.hasher = hasher
        self.signals = tuple(signals)
        self.threshold = threshold

    def score(self, inputs: MatchInputs) -> MatchScore:
        """
        Weighted match score of ``inputs``.

        Raises:
            ResolutionFailure: If a signal produces a non-finite value
        """
        result = MatchScore()
        for signal in self.signals:
            value = float(signal.score(inputs))
            if not math.isfinite(value):
                raise ResolutionFailure(
                    f"Signal {signal.name} produced {value}", context={"signal": signal.name}
                )
            value = min(1.0, max(0.0, value))
            result.signals[signal.name] = value
            result.combined += signal.weight * value
        return result

    def resolve(
        self,
        embedding: MultiVectorEmbedding,
        metadata: SessionMetadata,
        current_messages: Sequence[str],
        historical_candidates: Sequence[HistoricalCandidate],
        historical_metadata: SessionMetadata | None = None,
        historical_messages: Sequence[str] = (),
    ) -> str:
        """
        Pseudo user id for the incoming session.

        Returns the first candidate's pseudo user id when the match score
        exceeds the threshold; otherwise, with no candidates, or when
        scoring fails, a newly minted id. Candidates are expected in
        relevance/recency order and are not re-ranked.
        """
        start = time.perf_counter()
        outcome = "minted"
        try:
            if not historical_candidates:
                return generate_pseudo_user_id()

            inputs = MatchInputs(
                embedding=embedding,
                metadata=metadata,
                current_messages=current_messages,
                candidates=historical_candidates,
                historical_metadata=historical_metadata,
                historical_messages=historical_messages,
            )
            try:
                match = self.score(inputs)
            except Exception as e:
                outcome = "fallback"
                logger.warning(
                    f"Identity scoring failed, minting a new identity: {e}", exc_info=True
                )
                return generate_pseudo_user_id()

            logger.debug(
                f"Identity match score {match.combined:.3f}",
                extra={"signals": match.signals, "candidates": len(historical_candidates)},
            )
            if match.exceeds(self.threshold):
                outcome = "matched"
                return historical_candidates[0].pseudo_user_id
            return generate_pseudo_user_id()
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            record_operation(
                "identity.resolve",
                duration_ms,
                budget_ms=SLA_IDENTITY_RESOLUTION_MS,
                outcome=outcome,
            )

    async def link_to_map(
        self,
        pseudo_user_id: str,
        channel: str,
        raw_channel_user_id: str,
        confidence: float,
    ) -> bool:
        """
        Hash ``raw_channel_user_id`` and link it to ``pseudo_user_id``.

        Best effort: failures are logged and reported as False.
        """
        return await self.link_hashed(
            pseudo_user_id, channel, self.hasher(raw_channel_user_id), confidence
        )

    async def link_hashed(
        self,
        pseudo_user_id: str,
        channel: str,
        hashed_channel_user_id: str,
        confidence: float,
    ) -> bool:
        """Link an already hashed channel identity. Failures return False."""
        confidence = min(1.0, max(0.0, confidence))
        try:
            await self.identity_map.link(
                pseudo_user_id, channel, hashed_channel_user_id, confidence
            )
        except StoreWriteFailure as e:
            logger.error(f"Failed to link identity to map: {e}")
            return False
        return True

    async def find_pseudo_user_id(self, channel: str, raw_channel_user_id: str) -> str | None:
        """Pseudo user id linked to a raw channel identity, or None."""
        try:
            entry = await self.identity_map.find_by_link(
                channel, self.hasher(raw_channel_user_id)
            )
        except StoreReadFailure as e:
            logger.error(f"Failed to find pseudo user id: {e}")
            return None
        return entry.pseudo_user_id if entry else None

    async def get_linked_sessions(self, pseudo_user_id: str) -> list[LinkedSession]:
        try:
            entry = await self.identity_map.get(pseudo_user_id)
        except StoreReadFailure as e:
            logger.error(f"Failed to read linked sessions: {e}")
            return []
        return list(entry.linked_sessions) if entry else []

    async def get_linked_channels(self, pseudo_user_id: str) -> list[str]:
        sessions = await self.get_linked_sessions(pseudo_user_id)
        return sorted({s.channel for s in sessions})

    async def is_channel_linked(self, pseudo_user_id: str, channel: str) -> bool:
        return channel in await self.get_linked_channels(pseudo_user_id)

    async def list_pseudo_user_ids(self, limit: int = DEFAULT_PSEUDO_ID_LIST_LIMIT) -> list[str]:
        try:
            return await self.identity_map.list_pseudo_user_ids(limit)
        except StoreReadFailure as e:
            logger.error(f"Failed to list pseudo user ids: {e}")
            return []
