"""
Unit tests for the channel adapters.
"""

import hashlib
from datetime import datetime, timezone

import pytest

from context_space.channels.adapters import ADAPTERS, InboundMessage, get_adapter
from context_space.core.types import SessionMetadata
from context_space.exceptions import ValidationFailure
from context_space.intelligence.urgency import UrgencyScore
from context_space.pipeline.memory_pipeline import StoreResult


@pytest.fixture
def store_result():
    return StoreResult(
        success=True,
        session_id="x:abc",
        pseudo_user_id="P-1",
        stored_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        urgency=UrgencyScore(score=0.7, level="high"),
        escalated=True,
        escalation_ticket_id="ESC-1-abcdef",
    )


class TestNormalize:
    def test_every_supported_channel_has_an_adapter(self):
        assert set(ADAPTERS) == {"web", "whatsapp", "x", "email", "phone"}

    def test_unknown_channel(self):
        with pytest.raises(ValidationFailure) as exc_info:
            get_adapter("fax")
        assert exc_info.value.field == "channel"

    def test_web(self):
        inbound = get_adapter("web").normalize(
            {
                "session_cookie": "sess-1",
                "message": "Where is my order?",
                "metadata": {"ip": "10.0.0.1", "user_agent": "Mozilla", "other": "x"},
            }
        )
        assert inbound.channel_user_id == "sess-1"
        assert inbound.metadata == SessionMetadata(ip="10.0.0.1", user_agent="Mozilla")

    def test_x_strips_at_sign(self):
        inbound = get_adapter("x").normalize({"handle": "@jdoe", "message": "hi"})
        assert inbound.channel_user_id == "jdoe"

    def test_x_bare_at_sign_rejected(self):
        with pytest.raises(ValidationFailure) as exc_info:
            get_adapter("x").normalize({"handle": "@", "message": "hi"})
        assert exc_info.value.field == "handle"

    def test_email_subject_joins_text(self):
        inbound = get_adapter("email").normalize(
            {"from": "a@example.com", "subject": "Late order", "message": "Still waiting"}
        )
        assert inbound.text == "Late order\n\nStill waiting"
        assert inbound.summary == "Late order"

    def test_email_without_subject(self):
        body = "b" * 150
        inbound = get_adapter("email").normalize({"from": "a@example.com", "message": body})
        assert inbound.text == body
        assert inbound.summary == "b" * 100

    def test_phone_uses_transcript(self):
        inbound = get_adapter("phone").normalize(
            {"phone_number": "+15550001111", "transcript": "my package is missing"}
        )
        assert inbound.text == "my package is missing"

    @pytest.mark.parametrize(
        "channel,payload,field",
        [
            ("web", {"message": "hi"}, "session_cookie"),
            ("whatsapp", {"from": "+1555", "message": "  "}, "message"),
            ("email", {"message": "hi"}, "from"),
            ("phone", {"phone_number": "+1555"}, "transcript"),
        ],
    )
    def test_missing_fields(self, channel, payload, field):
        with pytest.raises(ValidationFailure) as exc_info:
            get_adapter(channel).normalize(payload)
        assert exc_info.value.field == field

    def test_metadata_must_be_object(self):
        with pytest.raises(ValidationFailure) as exc_info:
            get_adapter("whatsapp").normalize({"from": "+1", "message": "hi", "metadata": "x"})
        assert exc_info.value.field == "metadata"


class TestEnvelope:
    def test_raw_identifier_is_hashed(self):
        inbound = InboundMessage(channel="whatsapp", channel_user_id="+15550001111", text="hi")
        envelope = inbound.to_envelope(timestamp=10)
        assert envelope.hashed_channel_user_id == hashlib.sha256(b"+15550001111").hexdigest()
        assert envelope.message.timestamp == 10


class TestFormat:
    def test_whatsapp_reply(self, store_result):
        inbound = InboundMessage(channel="whatsapp", channel_user_id="+1555", text="hi")
        assert get_adapter("whatsapp").format(store_result, inbound) == {
            "to": "+1555",
            "message": "Message processed",
            "urgency": "high",
            "escalated": True,
        }

    def test_x_reply(self, store_result):
        inbound = InboundMessage(channel="x", channel_user_id="jdoe", text="hi")
        reply = get_adapter("x").format(store_result, inbound)
        assert reply["reply_to"] == "@jdoe"
        assert reply["message"] == "Tweet processed"

    def test_email_reply(self, store_result):
        inbound = InboundMessage(channel="email", channel_user_id="a@example.com", text="hi")
        reply = get_adapter("email").format(store_result, inbound)
        assert reply["to"] == "a@example.com"
        assert reply["subject"] == "Re: Your inquiry"

    def test_phone_reply(self, store_result):
        inbound = InboundMessage(channel="phone", channel_user_id="+1555", text="hi")
        reply = get_adapter("phone").format(store_result, inbound)
        assert reply["response_text"] == "Call processed"
        assert reply["phone_number"] == "+1555"

    def test_web_reply(self, store_result):
        inbound = InboundMessage(channel="web", channel_user_id="sess", text="hi")
        reply = get_adapter("web").format(store_result, inbound)
        assert reply == {
            "success": True,
            "session_id": "x:abc",
            "urgency": "high",
            "escalated": True,
            "recommended_actions": [],
        }
