"""
Data model for CONTEXT_SPACE.

Dataclasses for the per-turn envelope, the multi-vector embedding and the
records persisted by the short-term, long-term and identity-map stores.
Each persisted type converts to and from plain dictionaries.
"""

import dataclasses
import json
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from ..constants import (
    COMPARABLE_METADATA_FIELDS,
    LONG_TERM_TURN_ID_BYTES,
    SESSION_KEY_PREFIX,
    VECTOR_POINT_PREFIX,
)

Channel = Literal["web", "whatsapp", "x", "email", "phone"]
MessageRole = Literal["user", "assistant", "system"]
Vector = list[float]


def session_id_for(channel: str, hashed_channel_user_id: str) -> str:
    """Session id of a (channel, hashed user id) pair."""
    return f"{channel}:{hashed_channel_user_id}"


def session_key(session_id: str) -> str:
    """Key-value key under which a session's ShortTermRecord lives."""
    return f"{SESSION_KEY_PREFIX}{session_id}"


def vector_point_id(session_id: str) -> str:
    """Id of the short-term vector point superseded on every turn."""
    return f"{VECTOR_POINT_PREFIX}{session_id}"


@dataclass(frozen=True)
class Message:
    """One conversation turn."""

    timestamp: int
    role: str
    text: str
    summary: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {"timestamp": self.timestamp, "role": self.role, "text": self.text}
        if self.summary is not None:
            data["summary"] = self.summary
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            timestamp=int(data["timestamp"]),
            role=data["role"],
            text=data["text"],
            summary=data.get("summary"),
        )


@dataclass(frozen=True)
class SessionMetadata:
    """Request metadata used by the metadata similarity signal."""

    ip: str | None = None
    geo: str | None = None
    lang: str | None = None
    user_agent: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in dataclasses.asdict(self).items() if v is not None}

    def comparable(self) -> dict[str, str]:
        """The fields compared across sessions (ip, geo, lang) that are set."""
        return {
            name: getattr(self, name)
            for name in COMPARABLE_METADATA_FIELDS
            if getattr(self, name) is not None
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SessionMetadata":
        if not data:
            return cls()
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names and v is not None})


@dataclass(frozen=True)
class SessionEnvelope:
    """
    Canonical inbound turn.

    Built once per request and never mutated. ``hashed_channel_user_id`` is
    the one-way hash of the channel-local identifier; the raw value is not
    kept here.
    """

    channel: str
    hashed_channel_user_id: str
    message: Message
    metadata: SessionMetadata = field(default_factory=SessionMetadata)

    @property
    def session_id(self) -> str:
        return session_id_for(self.channel, self.hashed_channel_user_id)


@dataclass(frozen=True)
class MultiVectorEmbedding:
    """Intent, frustration and product vectors of one message."""

    intent_vector: tuple[float, ...]
    frustration_vector: tuple[float, ...]
    product_vector: tuple[float, ...]

    def __post_init__(self) -> None:
        sizes = {len(self.intent_vector), len(self.frustration_vector), len(self.product_vector)}
        if len(sizes) != 1:
            raise ValueError(f"Embedding vectors differ in dimensionality: {sorted(sizes)}")

    @property
    def dimensions(self) -> int:
        return len(self.intent_vector)

    @classmethod
    def from_lists(
        cls, intent: Vector, frustration: Vector, product: Vector
    ) -> "MultiVectorEmbedding":
        return cls(
            intent_vector=tuple(float(v) for v in intent),
            frustration_vector=tuple(float(v) for v in frustration),
            product_vector=tuple(float(v) for v in product),
        )


@dataclass
class ShortTermRecord:
    """Recent conversation state of one session, serialized into the KV store."""

    messages: list[Message] = field(default_factory=list)
    intent_vector: Vector = field(default_factory=list)
    frustration_level: float = 0.0

    def append(self, message: Message, max_messages: int) -> None:
        """Append a message, dropping the oldest ones beyond ``max_messages``."""
        self.messages.append(message)
        if len(self.messages) > max_messages:
            del self.messages[: len(self.messages) - max_messages]

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "intent_vector": list(self.intent_vector),
            "frustration_level": self.frustration_level,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShortTermRecord":
        return cls(
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            intent_vector=list(data.get("intent_vector", [])),
            frustration_level=float(data.get("frustration_level", 0.0)),
        )

    @classmethod
    def from_json(cls, raw: str) -> "ShortTermRecord":
        return cls.from_dict(json.loads(raw))


@dataclass
class ShortTermVectorPoint:
    """Nearest-neighbour entry for a session's latest turn."""

    session_id: str
    pseudo_user_id: str
    channel: str
    intent_vector: Vector
    frustration_vector: Vector
    product_vector: Vector
    timestamp: int
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def point_id(self) -> str:
        return vector_point_id(self.session_id)

    def payload(self) -> dict[str, Any]:
        """Everything except the indexed intent vector."""
        return {
            "session_id": self.session_id,
            "pseudo_user_id": self.pseudo_user_id,
            "channel": self.channel,
            "frustration_vector": list(self.frustration_vector),
            "product_vector": list(self.product_vector),
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }

    def to_dict(self) -> dict[str, Any]:
        return {**self.payload(), "intent_vector": list(self.intent_vector)}

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], intent_vector: Vector
    ) -> "ShortTermVectorPoint":
        return cls(
            session_id=payload["session_id"],
            pseudo_user_id=payload["pseudo_user_id"],
            channel=payload["channel"],
            intent_vector=list(intent_vector),
            frustration_vector=list(payload.get("frustration_vector", [])),
            product_vector=list(payload.get("product_vector", [])),
            timestamp=int(payload.get("timestamp", 0)),
            metadata=dict(payload.get("metadata") or {}),
        )


@dataclass
class LongTermMemoryPoint:
    """Persistent, insert-only summary of one turn."""

    pseudo_user_id: str
    summary: str
    intent_vector: Vector
    tone_vector: Vector
    product_vector: Vector
    entities: list[str]
    last_seen: int
    turn_id: str = field(default_factory=lambda: secrets.token_hex(LONG_TERM_TURN_ID_BYTES))

    @property
    def point_id(self) -> str:
        return f"{self.pseudo_user_id}-{self.last_seen}-{self.turn_id}"

    def payload(self) -> dict[str, Any]:
        return {
            "pseudo_user_id": self.pseudo_user_id,
            "summary": self.summary,
            "tone_vector": list(self.tone_vector),
            "product_vector": list(self.product_vector),
            "entities": list(self.entities),
            "last_seen": self.last_seen,
            "turn_id": self.turn_id,
        }

    def to_dict(self) -> dict[str, Any]:
        return {**self.payload(), "intent_vector": list(self.intent_vector)}

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], intent_vector: Vector
    ) -> "LongTermMemoryPoint":
        return cls(
            pseudo_user_id=payload["pseudo_user_id"],
            summary=payload.get("summary", ""),
            intent_vector=list(intent_vector),
            tone_vector=list(payload.get("tone_vector", [])),
            product_vector=list(payload.get("product_vector", [])),
            entities=list(payload.get("entities", [])),
            last_seen=int(payload.get("last_seen", 0)),
            turn_id=str(payload.get("turn_id", "")),
        )


@dataclass
class LinkedSession:
    """One channel identity linked to a pseudo identity."""

    channel: str
    hashed_channel_user_id: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LinkedSession":
        return cls(
            channel=data["channel"],
            hashed_channel_user_id=data["hashed_channel_user_id"],
            confidence=float(data.get("confidence", 0.0)),
        )


@dataclass
class IdentityMapEntry:
    """All channel identities believed to belong to one pseudo identity."""

    pseudo_user_id: str
    linked_sessions: list[LinkedSession] = field(default_factory=list)
    updated_at: datetime | None = None

    def find_link(self, channel: str, hashed_channel_user_id: str) -> LinkedSession | None:
        for link in self.linked_sessions:
            if link.channel == channel and link.hashed_channel_user_id == hashed_channel_user_id:
                return link
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pseudo_user_id": self.pseudo_user_id,
            "linked_sessions": [link.to_dict() for link in self.linked_sessions],
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IdentityMapEntry":
        return cls(
            pseudo_user_id=data["pseudo_user_id"],
            linked_sessions=[LinkedSession.from_dict(s) for s in data.get("linked_sessions", [])],
            updated_at=data.get("updated_at"),
        )


@dataclass
class EscalationTicket:
    """A durable request for human follow-up on an extracted problem."""

    ticket_id: str
    problem_id: str
    pseudo_user_id: str
    channel: str
    reason: str
    priority: str
    status: str
    created_at: datetime
    problem_summary: str
    conversation_context: str
    assigned_to: str | None = None
    resolved_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EscalationTicket":
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})
