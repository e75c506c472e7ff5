"""
Constants for CONTEXT_SPACE.

This module contains the thresholds, weights, keyword lists and latency
budgets shared by the identity, pipeline and intelligence layers.
"""

from typing import Final

# ============================================================================
# CHANNEL / MESSAGE CONSTANTS
# ============================================================================

SUPPORTED_CHANNELS: Final[tuple[str, ...]] = ("web", "whatsapp", "x", "email", "phone")
"""Channels accepted by the session envelope builder."""

MESSAGE_ROLES: Final[tuple[str, ...]] = ("user", "assistant", "system")
"""Roles a stored message may carry."""

SUMMARY_MAX_CHARS: Final[int] = 100
"""Default summary length when none is supplied with a message."""

SESSION_KEY_PREFIX: Final[str] = "session:"
"""Prefix of the key-value key holding a ShortTermRecord."""

VECTOR_POINT_PREFIX: Final[str] = "vector:"
"""Prefix of the short-term vector point id (derived from the session id)."""

# ============================================================================
# STORE CONSTANTS
# ============================================================================

DEFAULT_SESSION_TTL_SECONDS: Final[int] = 48 * 3600
"""Sliding expiry of a ShortTermRecord (refreshed on every write)."""

DEFAULT_RETRIEVAL_TOP_K: Final[int] = 10
"""Number of nearest neighbours read from each vector index."""

DEFAULT_MAX_SESSION_MESSAGES: Final[int] = 50
"""Upper bound on the message list of a ShortTermRecord; oldest dropped first."""

DEFAULT_EMBEDDING_MODEL: Final[str] = "text-embedding-3-large"
"""Embedding model requested from the provider."""

DEFAULT_EMBEDDING_DIMENSIONS: Final[int] = 1536
"""Dimensionality shared by the intent, frustration and product vectors."""

DEFAULT_DB_NAME: Final[str] = "context_space"
"""Default MongoDB database name."""

IDENTITY_MAP_COLLECTION: Final[str] = "user_identity_map"
"""Collection holding IdentityMapEntry documents."""

LONG_TERM_COLLECTION: Final[str] = "long_memory"
"""Collection backing the long-term vector index."""

SHORT_TERM_VECTOR_COLLECTION: Final[str] = "short_term_vectors"
"""Collection backing the short-term vector index."""

ESCALATION_COLLECTION: Final[str] = "escalation_tickets"
"""Collection holding escalation tickets."""

VECTOR_INDEX_NAME: Final[str] = "intent_vector_index"
"""Name of the Atlas vector search index on each vector collection."""

VECTOR_NUM_CANDIDATES_MULTIPLIER: Final[int] = 10
"""numCandidates = limit * multiplier for $vectorSearch queries."""

LONG_TERM_TURN_ID_BYTES: Final[int] = 4
"""Random bytes (hex encoded) appended to a long-term point id so same-second turns differ."""

# ============================================================================
# LATENCY BUDGETS (milliseconds, monitored, never enforced)
# ============================================================================

SLA_IDENTITY_RESOLUTION_MS: Final[float] = 10.0
"""Budget for scoring and deciding a pseudo identity."""

SLA_KV_WRITE_MS: Final[float] = 5.0
"""Budget for writing a ShortTermRecord."""

SLA_VECTOR_WRITE_MS: Final[float] = 5.0
"""Budget for upserting a ShortTermVectorPoint."""

SLA_VECTOR_QUERY_MS: Final[float] = 15.0
"""Budget for the short-term nearest-neighbour query."""

SLA_LONG_TERM_QUERY_MS: Final[float] = 60.0
"""Budget for the long-term nearest-neighbour query."""

SLA_LONG_TERM_WRITE_MS: Final[float] = 60.0
"""Budget for inserting a LongTermMemoryPoint."""

SLA_RETRIEVAL_MS: Final[float] = 120.0
"""Budget for a full retrieve call."""

# ============================================================================
# IDENTITY RESOLUTION CONSTANTS
# ============================================================================

MATCH_THRESHOLD: Final[float] = 0.82
"""Combined score that must be strictly exceeded to reuse an identity."""

VECTOR_WEIGHT: Final[float] = 0.35
"""Weight of the intent-vector similarity signal."""

METADATA_WEIGHT: Final[float] = 0.25
"""Weight of the ip/geo/lang metadata signal."""

BEHAVIOR_WEIGHT: Final[float] = 0.20
"""Weight of the writing-style signal."""

IDENTIFIER_WEIGHT: Final[float] = 0.20
"""Weight of the structured-identifier overlap signal."""

COMPARABLE_METADATA_FIELDS: Final[tuple[str, ...]] = ("ip", "geo", "lang")
"""Metadata fields compared by the metadata signal."""

MESSAGE_LENGTH_SCALE: Final[float] = 100.0
"""Characters over which a mean-length difference is normalized."""

PSEUDO_ID_GROUPS: Final[tuple[int, ...]] = (8, 4, 4, 4, 12)
"""Hex group lengths of a pseudo user id."""

LINK_CONFIDENCE_MATCHED: Final[float] = 0.85
"""Link confidence recorded when historical candidates existed."""

LINK_CONFIDENCE_NEW: Final[float] = 1.0
"""Link confidence recorded for a freshly minted identity."""

DEFAULT_PSEUDO_ID_LIST_LIMIT: Final[int] = 100
"""Default page size when listing pseudo user ids."""

# ============================================================================
# URGENCY CONSTANTS
# ============================================================================

URGENCY_WEIGHTS: Final[dict[str, float]] = {
    "frustration": 0.35,
    "repetition": 0.30,
    "time_sensitive": 0.20,
    "escalation_keywords": 0.15,
}
"""Weights of the four urgency factors."""

URGENCY_CRITICAL_THRESHOLD: Final[float] = 0.85
"""Score at or above which urgency is critical."""

URGENCY_HIGH_THRESHOLD: Final[float] = 0.60
"""Score at or above which urgency is high."""

URGENCY_MEDIUM_THRESHOLD: Final[float] = 0.30
"""Score at or above which urgency is medium."""

FRUSTRATION_MAGNITUDE_SCALE: Final[float] = 2.0
"""Multiplier applied to the per-dimension frustration magnitude."""

REPETITION_SIMILARITY_THRESHOLD: Final[float] = 0.30
"""Keyword overlap above which two messages count as a repetition."""

SHORT_TERM_REPETITION_STEP: Final[float] = 0.15
SHORT_TERM_REPETITION_CAP: Final[float] = 0.5
LONG_TERM_REPETITION_STEP: Final[float] = 0.10
LONG_TERM_REPETITION_CAP: Final[float] = 0.5

TIME_KEYWORD_STEP: Final[float] = 0.2
"""Contribution of each time-sensitive keyword found."""

ESCALATION_KEYWORD_STEP: Final[float] = 0.25
"""Contribution of each escalation keyword found."""

TIME_SENSITIVE_KEYWORDS: Final[tuple[str, ...]] = (
    "urgent",
    "asap",
    "immediately",
    "now",
    "today",
    "deadline",
    "expired",
    "overdue",
    "late",
    "emergency",
    "critical",
    "important",
)

ESCALATION_KEYWORDS: Final[tuple[str, ...]] = (
    "manager",
    "supervisor",
    "escalate",
    "complaint",
    "unacceptable",
    "terrible",
    "worst",
    "cancel",
    "refund",
    "legal",
    "sue",
    "lawyer",
)

URGENCY_LEVEL_WEIGHTS: Final[dict[str, int]] = {"critical": 4, "high": 3, "medium": 2, "low": 1}
"""Queue ordering weight of each urgency level."""

FRUSTRATION_KEYWORDS: Final[tuple[str, ...]] = (
    "frustrated",
    "angry",
    "upset",
    "disappointed",
    "terrible",
    "awful",
    "horrible",
)
"""Words that raise the stored frustration level of a session."""

FRUSTRATION_KEYWORD_BOOST: Final[float] = 0.3

# ============================================================================
# PROBLEM EXTRACTION CONSTANTS
# ============================================================================

PROBLEM_INDICATORS: Final[tuple[str, ...]] = (
    "problem",
    "issue",
    "error",
    "broken",
    "not working",
    "wrong",
    "delayed",
    "missing",
    "failed",
    "can't",
    "cannot",
    "help",
    "support",
    "complaint",
)
"""A message mentioning none of these yields no problem."""

SUMMARY_KEYWORDS: Final[tuple[str, ...]] = (
    "problem",
    "issue",
    "error",
    "broken",
    "wrong",
    "delayed",
    "missing",
)

PROBLEM_SUMMARY_MAX_CHARS: Final[int] = 150

CRITICAL_PROBLEM_KEYWORDS: Final[tuple[str, ...]] = (
    "refund",
    "cancel",
    "legal",
    "complaint",
    "unacceptable",
)

NOT_SOLVABLE_BOOST: Final[float] = 0.3
SIMILAR_HISTORY_BOOST: Final[float] = 0.2
CRITICAL_KEYWORD_BOOST: Final[float] = 0.2

OCCURRENCE_SIMILARITY_THRESHOLD: Final[float] = 0.40
"""Keyword overlap above which a past message counts as the same problem."""

CRITICAL_PROBLEM_CRITICALITY: Final[float] = 0.7
CRITICAL_PROBLEM_OCCURRENCES: Final[int] = 3

# ============================================================================
# ESCALATION CONSTANTS
# ============================================================================

ESCALATION_STATUSES: Final[tuple[str, ...]] = ("pending", "assigned", "in_progress", "resolved")
"""Ticket states, in their only allowed order."""

OPEN_ESCALATION_STATUSES: Final[tuple[str, ...]] = ("pending", "assigned", "in_progress")

ESCALATION_PRIORITIES: Final[tuple[str, ...]] = ("low", "medium", "high", "urgent")
"""Ticket priorities, lowest first."""

CRITICAL_PRIORITIES: Final[tuple[str, ...]] = ("urgent", "high")

PRIORITY_URGENT_CRITICALITY: Final[float] = 0.9
"""Problem criticality at or above which a ticket is urgent."""

PRIORITY_HIGH_CRITICALITY: Final[float] = 0.7
PRIORITY_MEDIUM_CRITICALITY: Final[float] = 0.5

DEFAULT_PENDING_LIMIT: Final[int] = 50
DEFAULT_CRITICAL_LIMIT: Final[int] = 20

# ============================================================================
# ENTITY EXTRACTION CONSTANTS
# ============================================================================

PRODUCT_TERMS: Final[tuple[str, ...]] = ("delivery", "refund", "return", "shipment", "package")
"""Terms recorded as entities on long-term memory points."""

PRODUCT_EMBEDDING_TERMS: Final[tuple[str, ...]] = PRODUCT_TERMS + ("product",)
"""Terms used to build the product embedding text."""
