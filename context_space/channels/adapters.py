"""
Channel adapters.

Each supported channel is one ``NormalizingAdapter`` value pairing a
``normalize`` function (raw channel payload -> InboundMessage) with a
``format`` function (StoreResult -> channel reply). Adapters are looked up
by channel tag with ``get_adapter``.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..constants import SUMMARY_MAX_CHARS
from ..core.types import SessionEnvelope, SessionMetadata
from ..exceptions import ValidationFailure
from ..identity.hashing import Hasher, sha256_hex
from ..pipeline.envelope import build_session_envelope
from ..pipeline.memory_pipeline import StoreResult

EMAIL_REPLY_SUBJECT = "Re: Your inquiry"


@dataclass(frozen=True)
class InboundMessage:
    """A channel payload in canonical form, before hashing."""

    channel: str
    channel_user_id: str
    text: str
    summary: str | None = None
    metadata: SessionMetadata = field(default_factory=SessionMetadata)

    def to_envelope(
        self, hasher: Hasher = sha256_hex, timestamp: int | None = None
    ) -> SessionEnvelope:
        return build_session_envelope(
            channel=self.channel,
            channel_user_id=self.channel_user_id,
            text=self.text,
            summary=self.summary,
            metadata=self.metadata,
            hasher=hasher,
            timestamp=timestamp,
        )


Normalizer = Callable[[Mapping[str, Any]], InboundMessage]
Formatter = Callable[[StoreResult, InboundMessage], dict[str, Any]]


@dataclass(frozen=True)
class NormalizingAdapter:
    channel: str
    normalize: Normalizer
    format: Formatter


def _require(payload: Mapping[str, Any], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailure(f"Missing required field '{name}'", field=name)
    return value


def _metadata(payload: Mapping[str, Any], fields: tuple[str, ...]) -> SessionMetadata:
    raw = payload.get("metadata") or {}
    if not isinstance(raw, Mapping):
        raise ValidationFailure("metadata must be an object", field="metadata")
    return SessionMetadata.from_dict({k: raw.get(k) for k in fields})


def _action_summaries(result: StoreResult) -> list[dict[str, Any]]:
    return [
        {
            "type": a.type,
            "description": a.description,
            "priority": round(a.priority, 4),
            "can_auto_execute": a.can_auto_execute,
        }
        for a in result.recommended_actions
    ]


# web


def _normalize_web(payload: Mapping[str, Any]) -> InboundMessage:
    text = _require(payload, "message")
    return InboundMessage(
        channel="web",
        channel_user_id=_require(payload, "session_cookie"),
        text=text,
        summary=text[:SUMMARY_MAX_CHARS],
        metadata=_metadata(payload, ("ip", "geo", "lang", "user_agent")),
    )


def _format_web(result: StoreResult, inbound: InboundMessage) -> dict[str, Any]:
    return {
        "success": result.success,
        "session_id": result.session_id,
        "urgency": result.urgency_level,
        "escalated": result.escalated,
        "recommended_actions": _action_summaries(result),
    }


# whatsapp


def _normalize_whatsapp(payload: Mapping[str, Any]) -> InboundMessage:
    text = _require(payload, "message")
    return InboundMessage(
        channel="whatsapp",
        channel_user_id=_require(payload, "from"),
        text=text,
        summary=text[:SUMMARY_MAX_CHARS],
        metadata=_metadata(payload, ("geo", "lang")),
    )


def _format_whatsapp(result: StoreResult, inbound: InboundMessage) -> dict[str, Any]:
    return {
        "to": inbound.channel_user_id,
        "message": "Message processed",
        "urgency": result.urgency_level,
        "escalated": result.escalated,
    }


# x


def _normalize_x(payload: Mapping[str, Any]) -> InboundMessage:
    text = _require(payload, "message")
    handle = _require(payload, "handle").removeprefix("@")
    if not handle:
        raise ValidationFailure("Missing required field 'handle'", field="handle")
    return InboundMessage(
        channel="x",
        channel_user_id=handle,
        text=text,
        summary=text[:SUMMARY_MAX_CHARS],
        metadata=_metadata(payload, ("geo", "lang")),
    )


def _format_x(result: StoreResult, inbound: InboundMessage) -> dict[str, Any]:
    return {
        "reply_to": f"@{inbound.channel_user_id}",
        "message": "Tweet processed",
        "urgency": result.urgency_level,
        "escalated": result.escalated,
    }


# email


def _normalize_email(payload: Mapping[str, Any]) -> InboundMessage:
    body = _require(payload, "message")
    subject = payload.get("subject") or None
    text = f"{subject}\n\n{body}" if subject else body
    return InboundMessage(
        channel="email",
        channel_user_id=_require(payload, "from"),
        text=text,
        summary=subject or body[:SUMMARY_MAX_CHARS],
        metadata=_metadata(payload, ("ip", "geo", "lang")),
    )


def _format_email(result: StoreResult, inbound: InboundMessage) -> dict[str, Any]:
    return {
        "to": inbound.channel_user_id,
        "subject": EMAIL_REPLY_SUBJECT,
        "message": "Email processed",
        "urgency": result.urgency_level,
        "escalated": result.escalated,
    }


# phone


def _normalize_phone(payload: Mapping[str, Any]) -> InboundMessage:
    transcript = _require(payload, "transcript")
    return InboundMessage(
        channel="phone",
        channel_user_id=_require(payload, "phone_number"),
        text=transcript,
        summary=transcript[:SUMMARY_MAX_CHARS],
        metadata=_metadata(payload, ("geo", "lang")),
    )


def _format_phone(result: StoreResult, inbound: InboundMessage) -> dict[str, Any]:
    return {
        "phone_number": inbound.channel_user_id,
        "response_text": "Call processed",
        "urgency": result.urgency_level,
        "escalated": result.escalated,
    }


ADAPTERS: dict[str, NormalizingAdapter] = {
    "web": NormalizingAdapter("web", _normalize_web, _format_web),
    "whatsapp": NormalizingAdapter("whatsapp", _normalize_whatsapp, _format_whatsapp),
    "x": NormalizingAdapter("x", _normalize_x, _format_x),
    "email": NormalizingAdapter("email", _normalize_email, _format_email),
    "phone": NormalizingAdapter("phone", _normalize_phone, _format_phone),
}


def get_adapter(channel: str) -> NormalizingAdapter:
    """
    Adapter for ``channel``.

    Raises:
        ValidationFailure: If the channel is not supported
    """
    adapter = ADAPTERS.get(channel)
    if adapter is None:
        raise ValidationFailure(f"Unsupported channel '{channel}'", field="channel", value=channel)
    return adapter
