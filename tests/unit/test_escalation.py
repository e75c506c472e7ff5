"""
Unit tests for escalation rules and the ticket lifecycle.
"""

import re
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from context_space.core.types import EscalationTicket
from context_space.exceptions import StoreReadFailure, StoreWriteFailure, ValidationFailure
from context_space.intelligence.escalation import EscalationManager
from context_space.intelligence.problems import ExtractedProblem
from context_space.intelligence.urgency import UrgencyScore
from context_space.stores.in_memory import InMemoryTicketStore
from context_space.stores.tickets import MongoTicketStore

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
TICKET_ID = re.compile(r"^ESC-\d+-[a-z0-9]{6}$")

LOW = UrgencyScore(score=0.1, level="low")
MEDIUM = UrgencyScore(score=0.425, level="medium")
CRITICAL = UrgencyScore(score=0.9, level="critical")


def make_problem(**overrides):
    values = dict(
        id="problem:web:1:x",
        summary="Order delayed",
        description="My order is delayed",
        category="delivery",
        criticality=0.3,
        can_agent_solve=True,
        entities=[],
        urgency="low",
        first_seen=1,
        last_seen=1,
    )
    values.update(overrides)
    return ExtractedProblem(**values)


@pytest.fixture
def clock():
    class Clock:
        now = NOW

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def manager(clock):
    return EscalationManager(InMemoryTicketStore(), clock=clock)


class TestEscalationRules:
    def test_should_escalate(self, manager):
        assert manager.should_escalate(make_problem(can_agent_solve=False))
        assert manager.should_escalate(make_problem(criticality=0.7))
        assert manager.should_escalate(make_problem(occurrence_count=3))
        assert manager.should_escalate(make_problem(description="Let me talk to a supervisor"))
        assert not manager.should_escalate(make_problem())

    @pytest.mark.parametrize(
        "overrides,reason",
        [
            ({"can_agent_solve": False, "criticality": 0.9}, "agent_cannot_solve"),
            ({"criticality": 0.75}, "critical_problem"),
            ({"occurrence_count": 4}, "repeated_issue"),
            ({}, "user_request"),
        ],
    )
    def test_reason_precedence(self, manager, overrides, reason):
        assert manager.determine_reason(make_problem(**overrides)) == reason

    @pytest.mark.parametrize(
        "criticality,urgency,priority",
        [
            (0.1, CRITICAL, "urgent"),
            (0.925, MEDIUM, "urgent"),
            (0.9, LOW, "urgent"),
            (0.89, LOW, "high"),
            (0.7, LOW, "high"),
            (0.3, MEDIUM, "medium"),
            (0.5, LOW, "medium"),
            (0.3, LOW, "low"),
        ],
    )
    def test_priority(self, manager, criticality, urgency, priority):
        problem = make_problem(criticality=criticality)
        assert manager.determine_priority(problem, urgency) == priority


class TestTicketLifecycle:
    @pytest.mark.asyncio
    async def test_create_ticket(self, manager):
        problem = make_problem(can_agent_solve=False, criticality=0.925)
        ticket = await manager.create_ticket(problem, "P-1", "web", MEDIUM, "ctx")

        assert TICKET_ID.match(ticket.ticket_id)
        assert ticket.ticket_id.startswith(f"ESC-{int(NOW.timestamp() * 1000)}-")
        assert ticket.status == "pending"
        assert ticket.priority == "urgent"
        assert ticket.reason == "agent_cannot_solve"
        assert ticket.created_at == NOW
        assert await manager.store.get(ticket.ticket_id) == ticket

    @pytest.mark.asyncio
    async def test_create_ticket_propagates_write_failure(self):
        store = MagicMock()
        store.insert = AsyncMock(side_effect=StoreWriteFailure("down", store="escalation_tickets"))
        with pytest.raises(StoreWriteFailure):
            await EscalationManager(store).create_ticket(make_problem(), "P-1", "web", LOW, "")

    @pytest.mark.asyncio
    async def test_forward_transitions(self, manager, clock):
        ticket = await manager.create_ticket(make_problem(), "P-1", "web", LOW, "")

        clock.now = NOW + timedelta(minutes=5)
        assigned = await manager.update_status(ticket.ticket_id, "assigned", assigned_to="agent-7")
        assert assigned.status == "assigned"
        assert assigned.assigned_to == "agent-7"
        assert assigned.resolved_at is None

        clock.now = NOW + timedelta(minutes=30)
        resolved = await manager.update_status(ticket.ticket_id, "resolved")
        assert resolved.resolved_at == clock.now
        assert (await manager.store.get(ticket.ticket_id)).status == "resolved"

    @pytest.mark.asyncio
    async def test_backward_and_repeated_transitions_rejected(self, manager):
        ticket = await manager.create_ticket(make_problem(), "P-1", "web", LOW, "")
        await manager.update_status(ticket.ticket_id, "in_progress")

        for status in ("pending", "assigned", "in_progress"):
            with pytest.raises(ValidationFailure) as exc_info:
                await manager.update_status(ticket.ticket_id, status)
            assert exc_info.value.field == "status"

    @pytest.mark.asyncio
    async def test_unknown_status_and_ticket(self, manager):
        with pytest.raises(ValidationFailure) as exc_info:
            await manager.update_status("ESC-1-abcdef", "closed")
        assert exc_info.value.field == "status"

        with pytest.raises(ValidationFailure) as exc_info:
            await manager.update_status("ESC-1-abcdef", "assigned")
        assert exc_info.value.field == "ticket_id"

    @pytest.mark.asyncio
    async def test_concurrent_update_loses(self, manager):
        ticket = await manager.create_ticket(make_problem(), "P-1", "web", LOW, "")
        manager.store.transition = AsyncMock(return_value=False)
        with pytest.raises(ValidationFailure):
            await manager.update_status(ticket.ticket_id, "assigned")


class TestListingAndAnalytics:
    @pytest.mark.asyncio
    async def test_pending_and_critical(self, manager):
        urgent = await manager.create_ticket(
            make_problem(criticality=0.95), "P-1", "web", LOW, ""
        )
        low = await manager.create_ticket(make_problem(), "P-2", "email", LOW, "")
        await manager.update_status(low.ticket_id, "assigned")

        pending = await manager.list_pending()
        critical = await manager.list_critical()

        assert [t.ticket_id for t in pending] == [urgent.ticket_id]
        assert [t.ticket_id for t in critical] == [urgent.ticket_id]

    @pytest.mark.asyncio
    async def test_pending_most_urgent_then_oldest_first(self, manager, clock):
        low = await manager.create_ticket(make_problem(), "P-1", "web", LOW, "")
        clock.now = NOW + timedelta(minutes=1)
        older_urgent = await manager.create_ticket(
            make_problem(criticality=0.95), "P-2", "web", LOW, ""
        )
        clock.now = NOW + timedelta(minutes=2)
        newer_urgent = await manager.create_ticket(
            make_problem(criticality=0.95), "P-3", "x", LOW, ""
        )
        clock.now = NOW + timedelta(minutes=3)
        high = await manager.create_ticket(
            make_problem(criticality=0.75), "P-4", "email", LOW, ""
        )

        pending = await manager.list_pending()
        critical = await manager.list_critical()

        assert [t.ticket_id for t in pending] == [
            older_urgent.ticket_id,
            newer_urgent.ticket_id,
            high.ticket_id,
            low.ticket_id,
        ]
        assert [t.priority for t in critical] == ["urgent", "urgent", "high"]

    @pytest.mark.asyncio
    async def test_listing_degrades_on_read_failure(self):
        store = MagicMock()
        store.find = AsyncMock(side_effect=StoreReadFailure("down", store="escalation_tickets"))
        manager = EscalationManager(store)

        assert await manager.list_pending() == []
        assert await manager.list_critical() == []
        assert (await manager.analytics())["total"] == 0

    @pytest.mark.asyncio
    async def test_analytics(self, manager, clock):
        first = await manager.create_ticket(
            make_problem(criticality=0.95), "P-1", "web", LOW, ""
        )
        await manager.create_ticket(make_problem(), "P-1", "email", LOW, "")
        await manager.update_status(first.ticket_id, "resolved")

        stats = await manager.analytics()

        assert stats["total"] == 2
        assert stats["pending"] == 1
        assert stats["resolved"] == 1
        assert stats["critical"] == 0
        assert stats["resolution_rate_24h"] == pytest.approx(0.5)
        assert stats["by_priority"] == {"urgent": 1, "low": 1}
        assert stats["by_channel"] == {"web": 1, "email": 1}
        assert stats["unique_users"] == 1

    @pytest.mark.asyncio
    async def test_analytics_window(self, manager, clock):
        await manager.create_ticket(make_problem(), "P-1", "web", LOW, "")
        clock.now = NOW + timedelta(days=2)
        stats = await manager.analytics()
        assert stats["total"] == 1
        assert stats["resolution_rate_24h"] == 0.0


class TestMongoTicketStore:
    @pytest.mark.asyncio
    async def test_transition_is_compare_and_set(self, mock_mongo_collection):
        mock_mongo_collection.update_one = AsyncMock(return_value=MagicMock(modified_count=1))
        store = MongoTicketStore(mock_mongo_collection)

        assert await store.transition("ESC-1-abcdef", "pending", {"status": "assigned"})
        mock_mongo_collection.update_one.assert_awaited_once_with(
            {"ticket_id": "ESC-1-abcdef", "status": "pending"}, {"$set": {"status": "assigned"}}
        )

    @pytest.mark.asyncio
    async def test_find_builds_query(self, mock_mongo_collection, make_cursor):
        doc = EscalationTicket(
            ticket_id="ESC-1-abcdef",
            problem_id="p",
            pseudo_user_id="P-1",
            channel="web",
            reason="user_request",
            priority="high",
            status="pending",
            created_at=NOW,
            problem_summary="s",
            conversation_context="c",
        ).to_dict()
        mock_mongo_collection.find = MagicMock(return_value=make_cursor([doc]))
        store = MongoTicketStore(mock_mongo_collection)

        tickets = await store.find(statuses=("pending",), priorities=("high",), limit=5)

        query = mock_mongo_collection.find.call_args[0][0]
        assert query == {"status": {"$in": ["pending"]}, "priority": {"$in": ["high"]}}
        assert tickets[0].ticket_id == "ESC-1-abcdef"

    @pytest.mark.asyncio
    async def test_find_by_priority_ranks_in_pipeline(self, mock_mongo_collection, make_cursor):
        mock_mongo_collection.aggregate = MagicMock(return_value=make_cursor([]))
        store = MongoTicketStore(mock_mongo_collection)

        await store.find(statuses=("pending",), limit=5, by_priority=True)

        pipeline = mock_mongo_collection.aggregate.call_args[0][0]
        assert pipeline[0] == {"$match": {"status": {"$in": ["pending"]}}}
        assert pipeline[1]["$addFields"]["_priority_rank"] == {
            "$indexOfArray": [["low", "medium", "high", "urgent"], "$priority"]
        }
        assert pipeline[2] == {"$sort": {"_priority_rank": -1, "created_at": 1}}
        assert pipeline[3] == {"$limit": 5}
        assert pipeline[4] == {"$project": {"_id": 0, "_priority_rank": 0}}
        mock_mongo_collection.find.assert_not_called()
