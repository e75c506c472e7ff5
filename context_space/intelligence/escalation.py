"""
Escalation to human agents.

Decides whether an extracted problem needs a human, creates the durable
ticket, lists open tickets for the admin surface and moves tickets
forward through pending -> assigned -> in_progress -> resolved.
"""

import logging
import secrets
import string
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from ..constants import (
    CRITICAL_PRIORITIES,
    CRITICAL_PROBLEM_CRITICALITY,
    CRITICAL_PROBLEM_OCCURRENCES,
    DEFAULT_CRITICAL_LIMIT,
    DEFAULT_PENDING_LIMIT,
    ESCALATION_STATUSES,
    OPEN_ESCALATION_STATUSES,
    PRIORITY_HIGH_CRITICALITY,
    PRIORITY_MEDIUM_CRITICALITY,
    PRIORITY_URGENT_CRITICALITY,
)
from ..core.types import EscalationTicket
from ..exceptions import StoreReadFailure, ValidationFailure
from ..stores.tickets import TicketStore
from .problems import ExtractedProblem, is_critical_problem
from .urgency import UrgencyScore

logger = logging.getLogger(__name__)

_TICKET_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def generate_ticket_id(now: datetime) -> str:
    suffix = "".join(secrets.choice(_TICKET_SUFFIX_ALPHABET) for _ in range(6))
    return f"ESC-{int(now.timestamp() * 1000)}-{suffix}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EscalationManager:
    """
    Escalation rules plus ticket lifecycle.

    Ticket creation and status updates propagate store failures; listing
    and analytics degrade to empty results.
    """

    def __init__(self, store: TicketStore, clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self._clock = clock

    def should_escalate(self, problem: ExtractedProblem) -> bool:
        if is_critical_problem(problem):
            return True
        description = problem.description.lower()
        return "manager" in description or "supervisor" in description

    def determine_reason(self, problem: ExtractedProblem) -> str:
        if not problem.can_agent_solve:
            return "agent_cannot_solve"
        if problem.criticality >= CRITICAL_PROBLEM_CRITICALITY:
            return "critical_problem"
        if problem.occurrence_count >= CRITICAL_PROBLEM_OCCURRENCES:
            return "repeated_issue"
        return "user_request"

    def determine_priority(self, problem: ExtractedProblem, urgency: UrgencyScore) -> str:
        if urgency.level == "critical" or problem.criticality >= PRIORITY_URGENT_CRITICALITY:
            return "urgent"
        if urgency.level == "high" or problem.criticality >= PRIORITY_HIGH_CRITICALITY:
            return "high"
        if urgency.level == "medium" or problem.criticality >= PRIORITY_MEDIUM_CRITICALITY:
            return "medium"
        return "low"

    async def create_ticket(
        self,
        problem: ExtractedProblem,
        pseudo_user_id: str,
        channel: str,
        urgency: UrgencyScore,
        conversation_context: str,
    ) -> EscalationTicket:
        """
        Create and persist a pending ticket.

        Raises:
            StoreWriteFailure: If the ticket cannot be stored
        """
        now = self._clock()
        ticket = EscalationTicket(
            ticket_id=generate_ticket_id(now),
            problem_id=problem.id,
            pseudo_user_id=pseudo_user_id,
            channel=channel,
            reason=self.determine_reason(problem),
            priority=self.determine_priority(problem, urgency),
            status="pending",
            created_at=now,
            updated_at=now,
            problem_summary=problem.summary,
            conversation_context=conversation_context,
        )
        await self.store.insert(ticket)
        logger.info(
            f"Created escalation ticket {ticket.ticket_id}",
            extra={
                "ticket_id": ticket.ticket_id,
                "priority": ticket.priority,
                "reason": ticket.reason,
                "problem_id": problem.id,
            },
        )
        return ticket

    async def list_pending(self, limit: int = DEFAULT_PENDING_LIMIT) -> list[EscalationTicket]:
        """Pending tickets, most urgent first and oldest first within a priority."""
        try:
            return await self.store.find(statuses=("pending",), limit=limit, by_priority=True)
        except StoreReadFailure as e:
            logger.error(f"Failed to list pending escalations: {e}")
            return []

    async def list_critical(self, limit: int = DEFAULT_CRITICAL_LIMIT) -> list[EscalationTicket]:
        """Open tickets with urgent or high priority."""
        try:
            return await self.store.find(
                statuses=OPEN_ESCALATION_STATUSES,
                priorities=CRITICAL_PRIORITIES,
                limit=limit,
                by_priority=True,
            )
        except StoreReadFailure as e:
            logger.error(f"Failed to list critical escalations: {e}")
            return []

    async def update_status(
        self, ticket_id: str, status: str, assigned_to: str | None = None
    ) -> EscalationTicket:
        """
        Move a ticket forward to ``status``.

        Raises:
            ValidationFailure: Unknown ticket, unknown status, or a transition
                that is not strictly forward
            StoreWriteFailure: If the update cannot be stored
        """
        if status not in ESCALATION_STATUSES:
            raise ValidationFailure(
                f"Unknown ticket status '{status}'", field="status", value=status
            )

        ticket = await self.store.get(ticket_id)
        if ticket is None:
            raise ValidationFailure("Unknown escalation ticket", field="ticket_id", value=ticket_id)

        current = ESCALATION_STATUSES.index(ticket.status)
        target = ESCALATION_STATUSES.index(status)
        if target <= current:
            raise ValidationFailure(
                f"Cannot move ticket from '{ticket.status}' to '{status}'",
                field="status",
                value=status,
            )

        now = self._clock()
        fields: dict[str, Any] = {"status": status, "updated_at": now}
        if assigned_to is not None:
            fields["assigned_to"] = assigned_to
        if status == "resolved":
            fields["resolved_at"] = now

        if not await self.store.transition(ticket_id, ticket.status, fields):
            raise ValidationFailure(
                "Ticket status changed concurrently", field="status", value=status
            )

        for name, value in fields.items():
            setattr(ticket, name, value)
        logger.info(f"Escalation ticket {ticket_id} moved to {status}")
        return ticket

    async def analytics(self) -> dict[str, Any]:
        """Counts over all tickets, plus the resolution rate of the last 24 hours."""
        try:
            tickets = await self.store.find()
        except StoreReadFailure as e:
            logger.error(f"Failed to compute escalation analytics: {e}")
            tickets = []

        since = self._clock() - timedelta(hours=24)
        recent = [t for t in tickets if _aware(t.created_at) >= since]
        recent_resolved = [t for t in recent if t.status == "resolved"]

        return {
            "total": len(tickets),
            "pending": sum(1 for t in tickets if t.status == "pending"),
            "critical": sum(
                1
                for t in tickets
                if t.status in OPEN_ESCALATION_STATUSES and t.priority in CRITICAL_PRIORITIES
            ),
            "resolved": sum(1 for t in tickets if t.status == "resolved"),
            "resolution_rate_24h": (len(recent_resolved) / len(recent)) if recent else 0.0,
            "by_priority": dict(Counter(t.priority for t in tickets)),
            "by_reason": dict(Counter(t.reason for t in tickets)),
            "by_channel": dict(Counter(t.channel for t in tickets)),
            "unique_users": len({t.pseudo_user_id for t in tickets}),
        }


def _aware(value: datetime) -> datetime:
    # Motor returns naive UTC datetimes unless tz_aware is set on the client.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
