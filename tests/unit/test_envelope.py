"""
Unit tests for the data model and session envelope construction.
"""

import hashlib

import pytest

from context_space.core.types import (

    Message,

    MultiVectorEmbedding,

    SessionMetadata,

    ShortTermRecord,

    session_id_for,

    session_key,

    vector_point_id,

)
from context_space.exceptions import ValidationFailure
from context_space.pipeline.envelope import build_session_envelope


class TestIdentifiers:
    def test_session_identifiers(self):
        session_id = session_id_for("web", "abc")
        assert session_id == "web:abc"
        assert session_key(session_id) == "session:web:abc"
        assert vector_point_id(session_id) == "vector:web:abc"


class TestBuildSessionEnvelope:
    def test_hashes_channel_user_id(self):
        envelope = build_session_envelope("whatsapp", "+15551234567", "Hello", timestamp=100)

        expected = hashlib.sha256(b"+15551234567").hexdigest()
        assert envelope.hashed_channel_user_id == expected
        assert envelope.session_id == f"whatsapp:{expected}"
        assert "+15551234567" not in repr(envelope)

    def test_same_identifier_same_session(self):
        a = build_session_envelope("web", "cookie-1", "first")
        b = build_session_envelope("web", "cookie-1", "second")
        c = build_session_envelope("email", "cookie-1", "third")
        assert a.session_id == b.session_id
        assert a.session_id != c.session_id

    def test_summary_defaults_to_prefix(self):
        text = "x" * 250
        envelope = build_session_envelope("web", "u", text)
        assert envelope.message.summary == "x" * 100
        assert envelope.message.role == "user"

    def test_explicit_summary_and_metadata(self):
        envelope = build_session_envelope(
            "email",
            "a@example.com",
            "Body",
            summary="Subject",
            metadata={"ip": "10.0.0.1", "lang": "en", "unknown": "dropped"},
            timestamp=1700000000,
        )
        assert envelope.message.summary == "Subject"
        assert envelope.message.timestamp == 1700000000
        assert envelope.metadata == SessionMetadata(ip="10.0.0.1", lang="en")

    def test_custom_hasher(self):
        envelope = build_session_envelope("x", "handle", "hi", hasher=lambda raw: f"h({raw})")
        assert envelope.hashed_channel_user_id == "h(handle)"

    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"channel": "fax"}, "channel"),
            ({"role": "robot"}, "role"),
            ({"channel_user_id": "  "}, "channel_user_id"),
            ({"text": ""}, "text"),
        ],
    )
    def test_rejects_invalid_input(self, kwargs, field):
        args = {"channel": "web", "channel_user_id": "u", "text": "hello", **kwargs}
        with pytest.raises(ValidationFailure) as exc_info:
            build_session_envelope(**args)
        assert exc_info.value.field == field

    def test_envelope_is_immutable(self):
        envelope = build_session_envelope("web", "u", "hello")
        with pytest.raises(AttributeError):
            envelope.channel = "email"


class TestShortTermRecord:
    def test_append_is_bounded(self):
        record = ShortTermRecord()
        for i in range(5):
            record.append(Message(timestamp=i, role="user", text=f"m{i}"), max_messages=3)
        assert [m.text for m in record.messages] == ["m2", "m3", "m4"]

    def test_json_round_trip(self):
        record = ShortTermRecord(
            messages=[Message(timestamp=1, role="user", text="hi", summary="hi")],
            intent_vector=[0.1, 0.2],
            frustration_level=0.4,
        )
        assert ShortTermRecord.from_json(record.to_json()) == record


class TestMultiVectorEmbedding:
    def test_rejects_mismatched_dimensions(self):
        with pytest.raises(ValueError):
            MultiVectorEmbedding.from_lists([1.0, 2.0], [1.0], [1.0, 2.0])

    def test_dimensions(self):
        embedding = MultiVectorEmbedding.from_lists([1, 2, 3], [0, 0, 0], [1, 1, 1])
        assert embedding.dimensions == 3
        assert embedding.intent_vector == (1.0, 2.0, 3.0)
