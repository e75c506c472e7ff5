"""
Memory pipeline: the store and retrieve paths.

Store path, per inbound turn:

1. the caller builds the SessionEnvelope
2. embed the message (intent, frustration, product)
3. read the session record                      } concurrently
4. query short-term and long-term vector indexes }
5. resolve the pseudo identity and link it in the identity map
6. urgency -> problem -> escalation -> actions
7. write back: session record, short-term vector point, long-term point

Embedding failures abort the request. Read failures (and read timeouts,
when configured) degrade to "no prior context". Write failures propagate
tagged with the failing store. Identity-map link failures are logged only.
The three writes are not transactional.
"""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from ..constants import (
    FRUSTRATION_KEYWORD_BOOST,
    FRUSTRATION_KEYWORDS,
    LINK_CONFIDENCE_MATCHED,
    LINK_CONFIDENCE_NEW,
    SLA_RETRIEVAL_MS,
    SUMMARY_MAX_CHARS,
)
from ..core.context import MemoryContext
from ..core.types import (
    LongTermMemoryPoint,
    MultiVectorEmbedding,
    SessionEnvelope,
    SessionMetadata,
    ShortTermRecord,
    ShortTermVectorPoint,
)
from ..exceptions import StoreReadFailure
from ..identity.resolver import IdentityResolver
from ..intelligence.actions import ActionRecommender, RecommendedAction
from ..intelligence.escalation import EscalationManager
from ..intelligence.problems import ExtractedProblem, ProblemExtractor
from ..intelligence.text import contains_any, extract_entities, extract_product_terms
from ..intelligence.urgency import UrgencyEstimator, UrgencyScore
from ..observability.logging import get_logger, log_operation, set_request_context
from ..observability.metrics import record_operation

logger = logging.getLogger(__name__)
contextual_logger = get_logger(__name__)

T = TypeVar("T")

RECENT_MESSAGES_IN_BLOCK = 5
SIMILAR_SESSIONS_IN_BLOCK = 5
EMPTY_MEMORY_BLOCK = "No previous context found."


@dataclass
class ContextReads:
    """Results of the concurrent stage 3-4 reads."""

    short_term: ShortTermRecord | None = None
    similar_sessions: list[ShortTermVectorPoint] = field(default_factory=list)
    long_term: list[LongTermMemoryPoint] = field(default_factory=list)


@dataclass
class StoreResult:
    success: bool
    session_id: str
    pseudo_user_id: str
    stored_at: datetime
    urgency: UrgencyScore
    problem: ExtractedProblem | None = None
    escalated: bool = False
    escalation_ticket_id: str | None = None
    recommended_actions: list[RecommendedAction] = field(default_factory=list)

    @property
    def urgency_level(self) -> str:
        return self.urgency.level

    def to_dict(self) -> dict[str, Any]:
        problem = None
        if self.problem is not None:
            problem = {
                "id": self.problem.id,
                "summary": self.problem.summary,
                "category": self.problem.category,
                "criticality": round(self.problem.criticality, 4),
                "can_agent_solve": self.problem.can_agent_solve,
            }
        return {
            "success": self.success,
            "session_id": self.session_id,
            "pseudo_user_id": self.pseudo_user_id,
            "stored_at": self.stored_at.isoformat(),
            "urgency": self.urgency.to_dict(),
            "problem": problem,
            "escalated": self.escalated,
            "escalation_ticket_id": self.escalation_ticket_id,
            "recommended_actions": [a.to_dict() for a in self.recommended_actions],
        }


@dataclass
class MemoryRetrievalResult:
    memory_block: str
    short_term: ShortTermRecord | None
    similar_sessions: list[ShortTermVectorPoint]
    long_term: list[LongTermMemoryPoint]
    retrieved_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "memory_block": self.memory_block,
            "short_term": self.short_term.to_dict() if self.short_term else None,
            "similar_sessions": [
                {"session_id": p.session_id, "channel": p.channel, "timestamp": p.timestamp}
                for p in self.similar_sessions
            ],
            "long_term": [
                {k: v for k, v in p.to_dict().items() if not k.endswith("_vector")}
                for p in self.long_term
            ],
            "retrieved_at": self.retrieved_at.isoformat(),
        }


def frustration_level(embedding: MultiVectorEmbedding, text: str) -> float:
    """Stored per-session frustration: vector magnitude per dimension plus a keyword boost."""
    vector = embedding.frustration_vector
    level = math.sqrt(sum(v * v for v in vector)) / len(vector) if vector else 0.0
    if contains_any(text, FRUSTRATION_KEYWORDS):
        level += FRUSTRATION_KEYWORD_BOOST
    return min(1.0, level)


def build_memory_block(
    short_term: ShortTermRecord | None,
    similar_sessions: list[ShortTermVectorPoint],
    long_term: list[LongTermMemoryPoint],
) -> str:
    """Prompt-ready text summarizing the retrieved context."""
    sections = []
    if short_term is not None and short_term.messages:
        lines = ["## Recent Conversation Context"]
        for message in short_term.messages[-RECENT_MESSAGES_IN_BLOCK:]:
            text = message.summary or message.text[:SUMMARY_MAX_CHARS]
            lines.append(f"- [{message.role}] {text}")
        sections.append("\n".join(lines))

    if similar_sessions:
        lines = [f"## Similar Recent Interactions ({len(similar_sessions)} found)"]
        for point in similar_sessions[:SIMILAR_SESSIONS_IN_BLOCK]:
            lines.append(f"- {point.channel} session: {point.session_id}")
        sections.append("\n".join(lines))

    if long_term:
        lines = [f"## Historical Context ({len(long_term)} memories)"]
        for point in long_term:
            lines.append(f"- {point.summary}")
            if point.entities:
                lines.append(f"  Entities: {', '.join(point.entities)}")
        sections.append("\n".join(lines))

    if not sections:
        return EMPTY_MEMORY_BLOCK
    return "\n\n".join(sections)


class MemoryPipeline:
    """
    Orchestrates the store and retrieve paths over a MemoryContext.

    Every collaborator can be replaced; the defaults are the rule-based
    implementations.
    """

    def __init__(
        self,
        context: MemoryContext,
        resolver: IdentityResolver | None = None,
        urgency_estimator: UrgencyEstimator | None = None,
        problem_extractor: ProblemExtractor | None = None,
        escalation_manager: EscalationManager | None = None,
        action_recommender: ActionRecommender | None = None,
    ):
        self.context = context
        self.resolver = resolver or IdentityResolver(context.identity_map, hasher=context.hasher)
        self.urgency_estimator = urgency_estimator or UrgencyEstimator()
        self.problem_extractor = problem_extractor or ProblemExtractor()
        self.escalation_manager = escalation_manager or EscalationManager(context.tickets)
        self.action_recommender = action_recommender or ActionRecommender()

    async def _guarded_read(self, read: Awaitable[T], default: T, store: str) -> T:
        timeout = self.context.config.store_read_timeout_seconds
        try:
            if timeout is None:
                return await read
            return await asyncio.wait_for(read, timeout=timeout)
        except StoreReadFailure as e:
            logger.warning(f"Read from {e.store} failed, continuing without it: {e}")
        except asyncio.TimeoutError:
            logger.warning(f"Read from {store} timed out after {timeout}s, continuing without it")
        return default

    async def read_context(self, session_id: str, intent_vector: list[float]) -> ContextReads:
        """Stage 3-4 reads, issued concurrently; each degrades to empty on failure."""
        top_k = self.context.config.retrieval_top_k
        short_term, similar, long_term = await asyncio.gather(
            self._guarded_read(
                self.context.short_term.get_session(session_id), None, "short_term_kv"
            ),
            self._guarded_read(
                self.context.short_term.query_similar(intent_vector, top_k),
                [],
                "short_term_vector",
            ),
            self._guarded_read(
                self.context.long_term.query_similar(intent_vector, top_k), [], "long_term"
            ),
        )
        return ContextReads(short_term=short_term, similar_sessions=similar, long_term=long_term)

    async def store(self, envelope: SessionEnvelope) -> StoreResult:
        """
        Run the full store path for one turn.

        Raises:
            EmbeddingFailure: If the message cannot be embedded
            StoreWriteFailure: If a write-back or the escalation ticket fails
        """
        start = time.perf_counter()
        session_id = envelope.session_id
        message = envelope.message
        set_request_context(channel=envelope.channel, session_id=session_id)

        embedding = await self.context.embedder.embed(message.text, message.summary)
        intent_vector = list(embedding.intent_vector)

        reads = await self.read_context(session_id, intent_vector)

        candidates = [*reads.similar_sessions, *reads.long_term]
        historical_metadata = next(
            (SessionMetadata.from_dict(p.metadata) for p in reads.similar_sessions if p.metadata),
            None,
        )
        pseudo_user_id = self.resolver.resolve(
            embedding=embedding,
            metadata=envelope.metadata,
            current_messages=[message.text],
            historical_candidates=candidates,
            historical_metadata=historical_metadata,
            historical_messages=[p.summary for p in reads.long_term],
        )
        set_request_context(pseudo_user_id=pseudo_user_id)
        await self.resolver.link_hashed(
            pseudo_user_id,
            envelope.channel,
            envelope.hashed_channel_user_id,
            LINK_CONFIDENCE_MATCHED if candidates else LINK_CONFIDENCE_NEW,
        )

        urgency = self.urgency_estimator.calculate_urgency(
            message.text, embedding.frustration_vector, reads.short_term, reads.long_term
        )
        problem = self.problem_extractor.extract_problem(
            message.text,
            envelope.channel,
            urgency,
            reads.short_term,
            reads.long_term,
            timestamp=message.timestamp,
        )
        ticket_id = None
        actions: list[RecommendedAction] = []
        if problem is not None:
            if self.escalation_manager.should_escalate(problem):
                history = reads.short_term.messages if reads.short_term else []
                conversation = "\n".join(m.text for m in history) or message.text
                ticket = await self.escalation_manager.create_ticket(
                    problem, pseudo_user_id, envelope.channel, urgency, conversation
                )
                ticket_id = ticket.ticket_id
            actions = self.action_recommender.recommend_actions(problem, urgency)

        await self._write_back(envelope, embedding, pseudo_user_id, reads.short_term)

        duration_ms = (time.perf_counter() - start) * 1000
        record_operation("pipeline.store", duration_ms, channel=envelope.channel)
        contextual_logger.info(
            "Stored turn",
            extra={
                "urgency": urgency.level,
                "escalated": ticket_id is not None,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return StoreResult(
            success=True,
            session_id=session_id,
            pseudo_user_id=pseudo_user_id,
            stored_at=datetime.now(timezone.utc),
            urgency=urgency,
            problem=problem,
            escalated=ticket_id is not None,
            escalation_ticket_id=ticket_id,
            recommended_actions=actions,
        )

    async def _write_back(
        self,
        envelope: SessionEnvelope,
        embedding: MultiVectorEmbedding,
        pseudo_user_id: str,
        existing: ShortTermRecord | None,
    ) -> None:
        # Order matters: session record, then vector point, then archive.
        message = envelope.message
        session_id = envelope.session_id
        await self.context.short_term.append_message(
            session_id,
            existing,
            message,
            list(embedding.intent_vector),
            frustration_level(embedding, message.text),
        )
        await self.context.short_term.upsert_vector_point(
            ShortTermVectorPoint(
                session_id=session_id,
                pseudo_user_id=pseudo_user_id,
                channel=envelope.channel,
                intent_vector=list(embedding.intent_vector),
                frustration_vector=list(embedding.frustration_vector),
                product_vector=list(embedding.product_vector),
                timestamp=message.timestamp,
                metadata=envelope.metadata.comparable(),
            )
        )
        entities = list(
            dict.fromkeys(extract_entities(message.text) + extract_product_terms(message.text))
        )
        await self.context.long_term.insert(
            LongTermMemoryPoint(
                pseudo_user_id=pseudo_user_id,
                summary=message.summary or message.text[:SUMMARY_MAX_CHARS],
                intent_vector=list(embedding.intent_vector),
                tone_vector=list(embedding.frustration_vector),
                product_vector=list(embedding.product_vector),
                entities=entities,
                last_seen=message.timestamp,
            )
        )

    async def retrieve(self, session_id: str, query_text: str) -> MemoryRetrievalResult:
        """
        Context for response generation: the stage 3-4 reads only, no writes.

        Raises:
            EmbeddingFailure: If the query cannot be embedded
        """
        start = time.perf_counter()
        set_request_context(session_id=session_id)
        embedding = await self.context.embedder.embed(query_text)
        reads = await self.read_context(session_id, list(embedding.intent_vector))

        result = MemoryRetrievalResult(
            memory_block=build_memory_block(
                reads.short_term, reads.similar_sessions, reads.long_term
            ),
            short_term=reads.short_term,
            similar_sessions=reads.similar_sessions,
            long_term=reads.long_term,
            retrieved_at=datetime.now(timezone.utc),
        )
        duration_ms = (time.perf_counter() - start) * 1000
        record_operation("pipeline.retrieve", duration_ms, budget_ms=SLA_RETRIEVAL_MS)
        log_operation(
            logger,
            "pipeline.retrieve",
            level=logging.DEBUG,
            duration_ms=duration_ms,
            similar_sessions=len(reads.similar_sessions),
            long_term=len(reads.long_term),
        )
        return result
