"""
Core data model, connection management and the explicit store context.
"""

from .types import (
    EscalationTicket,
    IdentityMapEntry,
    LinkedSession,
    LongTermMemoryPoint,
    Message,
    MultiVectorEmbedding,
    SessionEnvelope,
    SessionMetadata,
    ShortTermRecord,
    ShortTermVectorPoint,
    session_id_for,
)

__all__ = [
    "EscalationTicket",
    "IdentityMapEntry",
    "LinkedSession",
    "LongTermMemoryPoint",
    "Message",
    "MultiVectorEmbedding",
    "SessionEnvelope",
    "SessionMetadata",
    "ShortTermRecord",
    "ShortTermVectorPoint",
    "session_id_for",
]
