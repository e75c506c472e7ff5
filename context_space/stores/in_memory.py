"""
In-process store implementations.

Used by the unit tests and for running the pipeline without Redis or
MongoDB. Values are copied on the way in and out so callers never share
state with the store.
"""

import asyncio
import copy
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import numpy as np

from ..constants import ESCALATION_PRIORITIES
from ..core.types import EscalationTicket, IdentityMapEntry, LinkedSession
from ..exceptions import StoreWriteFailure
from .base import KeyValueStore, VectorIndex, VectorMatch
from .identity_map import IdentityMap
from .tickets import TicketStore


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed KeyValueStore honouring expiry."""

    def __init__(
        self,
        store_name: str = "short_term_kv",
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(store_name)
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def ping(self) -> bool:
        return True

    def ttl(self, key: str) -> float | None:
        """Seconds until ``key`` expires, or None when absent."""
        item = self._data.get(key)
        if item is None:
            return None
        return item[1] - self._clock()

    def clear(self) -> None:
        self._data.clear()


def _cosine(a: np.ndarray, b: np.ndarray) -> float:
    if a.shape != b.shape:
        return 0.0
    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(a, b) / denominator)


class InMemoryVectorIndex(VectorIndex):
    """Brute-force cosine index."""

    def __init__(self, store_name: str):
        super().__init__(store_name)
        self._points: dict[str, tuple[list[float], dict[str, Any]]] = {}

    async def upsert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        self._points[point_id] = (list(vector), copy.deepcopy(payload))

    async def insert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        if point_id in self._points:
            raise StoreWriteFailure(
                f"Point {point_id} already exists in {self.store_name}",
                store=self.store_name,
                context={"point_id": point_id},
            )
        self._points[point_id] = (list(vector), copy.deepcopy(payload))

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        query = np.asarray(vector, dtype=float)
        scored = []
        for point_id, (stored, payload) in self._points.items():
            if filter and any(payload.get(k) != v for k, v in filter.items()):
                continue
            score = _cosine(query, np.asarray(stored, dtype=float))
            scored.append((score, point_id))
        scored.sort(key=lambda item: (-item[0], item[1]))

        matches = []
        for score, point_id in scored[:top_k]:
            stored, payload = self._points[point_id]
            matches.append(
                VectorMatch(
                    id=point_id,
                    score=score,
                    vector=list(stored),
                    payload=copy.deepcopy(payload),
                )
            )
        return matches

    async def count(self) -> int:
        return len(self._points)

    def clear(self) -> None:
        self._points.clear()


class InMemoryIdentityMap(IdentityMap):
    """IdentityMap whose link step runs under one lock."""

    def __init__(self):
        self._entries: dict[str, IdentityMapEntry] = {}
        self._lock = asyncio.Lock()

    async def link(
        self,
        pseudo_user_id: str,
        channel: str,
        hashed_channel_user_id: str,
        confidence: float,
    ) -> None:
        async with self._lock:
            now = datetime.now(timezone.utc)
            entry = self._entries.get(pseudo_user_id)
            if entry is not None:
                existing = entry.find_link(channel, hashed_channel_user_id)
                if existing is not None:
                    existing.confidence = max(existing.confidence, confidence)
                    entry.updated_at = now
                    return

            for other in self._entries.values():
                if other.pseudo_user_id != pseudo_user_id and other.find_link(
                    channel, hashed_channel_user_id
                ):
                    other.linked_sessions = [
                        link
                        for link in other.linked_sessions
                        if not (
                            link.channel == channel
                            and link.hashed_channel_user_id == hashed_channel_user_id
                        )
                    ]
                    other.updated_at = now

            if entry is None:
                entry = IdentityMapEntry(pseudo_user_id=pseudo_user_id)
                self._entries[pseudo_user_id] = entry
            entry.linked_sessions.append(
                LinkedSession(
                    channel=channel,
                    hashed_channel_user_id=hashed_channel_user_id,
                    confidence=confidence,
                )
            )
            entry.updated_at = now

    async def get(self, pseudo_user_id: str) -> IdentityMapEntry | None:
        entry = self._entries.get(pseudo_user_id)
        return copy.deepcopy(entry)

    async def find_by_link(
        self, channel: str, hashed_channel_user_id: str
    ) -> IdentityMapEntry | None:
        for entry in self._entries.values():
            if entry.find_link(channel, hashed_channel_user_id):
                return copy.deepcopy(entry)
        return None

    async def list_pseudo_user_ids(self, limit: int) -> list[str]:
        ordered = sorted(
            self._entries.values(),
            key=lambda e: e.updated_at or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return [entry.pseudo_user_id for entry in ordered[:limit]]


def _priority_rank(priority: str) -> int:
    return ESCALATION_PRIORITIES.index(priority) if priority in ESCALATION_PRIORITIES else -1


class InMemoryTicketStore(TicketStore):
    """Dictionary-backed TicketStore."""

    def __init__(self):
        self._tickets: dict[str, EscalationTicket] = {}

    async def insert(self, ticket: EscalationTicket) -> None:
        if ticket.ticket_id in self._tickets:
            raise StoreWriteFailure(
                f"Ticket {ticket.ticket_id} already exists",
                store="escalation_tickets",
            )
        self._tickets[ticket.ticket_id] = copy.deepcopy(ticket)

    async def get(self, ticket_id: str) -> EscalationTicket | None:
        return copy.deepcopy(self._tickets.get(ticket_id))

    async def find(
        self,
        statuses: tuple[str, ...] | None = None,
        priorities: tuple[str, ...] | None = None,
        limit: int | None = None,
        by_priority: bool = False,
    ) -> list[EscalationTicket]:
        tickets = [
            t
            for t in self._tickets.values()
            if (not statuses or t.status in statuses)
            and (not priorities or t.priority in priorities)
        ]
        if by_priority:
            tickets.sort(key=lambda t: t.created_at)
            tickets.sort(key=lambda t: _priority_rank(t.priority), reverse=True)
        else:
            tickets.sort(key=lambda t: t.created_at, reverse=True)
        if limit:
            tickets = tickets[:limit]
        return copy.deepcopy(tickets)

    async def transition(self, ticket_id: str, from_status: str, fields: dict[str, Any]) -> bool:
        ticket = self._tickets.get(ticket_id)
        if ticket is None or ticket.status != from_status:
            return False
        for name, value in fields.items():
            setattr(ticket, name, value)
        return True
