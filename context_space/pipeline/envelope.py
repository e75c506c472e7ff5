"""
Session envelope construction and validation.
"""

import time
from typing import Any

from ..constants import MESSAGE_ROLES, SUMMARY_MAX_CHARS, SUPPORTED_CHANNELS
from ..core.types import Message, SessionEnvelope, SessionMetadata
from ..exceptions import ValidationFailure
from ..identity.hashing import Hasher, sha256_hex


def build_session_envelope(
    channel: str,
    channel_user_id: str,
    text: str,
    role: str = "user",
    summary: str | None = None,
    metadata: SessionMetadata | dict[str, Any] | None = None,
    hasher: Hasher = sha256_hex,
    timestamp: int | None = None,
) -> SessionEnvelope:
    """
    Validate an inbound turn and build its immutable envelope.

    The raw ``channel_user_id`` is hashed here and not retained.

    Raises:
        ValidationFailure: Unknown channel or role, blank user id or text
    """
    if channel not in SUPPORTED_CHANNELS:
        raise ValidationFailure(f"Unsupported channel '{channel}'", field="channel", value=channel)
    if role not in MESSAGE_ROLES:
        raise ValidationFailure(f"Unsupported role '{role}'", field="role", value=role)
    if not channel_user_id or not channel_user_id.strip():
        raise ValidationFailure("channel_user_id is required", field="channel_user_id")
    if not text or not text.strip():
        raise ValidationFailure("message text is required", field="text")

    if not isinstance(metadata, SessionMetadata):
        metadata = SessionMetadata.from_dict(metadata)

    message = Message(
        timestamp=timestamp if timestamp is not None else int(time.time()),
        role=role,
        text=text,
        summary=summary if summary else text[:SUMMARY_MAX_CHARS],
    )
    return SessionEnvelope(
        channel=channel,
        hashed_channel_user_id=hasher(channel_user_id),
        message=message,
        metadata=metadata,
    )
