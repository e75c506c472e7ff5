"""
Escalation ticket store.

Tickets are inserted once and afterwards only change through a
compare-and-set on their current status, so two concurrent status
updates cannot both apply.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from ..constants import ESCALATION_PRIORITIES
from ..core.types import EscalationTicket
from ..exceptions import StoreReadFailure, StoreWriteFailure

logger = logging.getLogger(__name__)

STORE_NAME = "escalation_tickets"


class TicketStore(ABC):
    """Durable storage for escalation tickets."""

    @abstractmethod
    async def insert(self, ticket: EscalationTicket) -> None:
        """
        Persist a new ticket.

        Raises:
            StoreWriteFailure: If the ticket cannot be stored
        """

    @abstractmethod
    async def get(self, ticket_id: str) -> EscalationTicket | None:
        """
        Ticket by id, or None.

        Raises:
            StoreReadFailure: If the store cannot be read
        """

    @abstractmethod
    async def find(
        self,
        statuses: tuple[str, ...] | None = None,
        priorities: tuple[str, ...] | None = None,
        limit: int | None = None,
        by_priority: bool = False,
    ) -> list[EscalationTicket]:
        """
        Tickets matching the given statuses/priorities.

        Newest first, or with ``by_priority`` most urgent first and oldest
        first within a priority.

        Raises:
            StoreReadFailure: If the store cannot be read
        """

    @abstractmethod
    async def transition(self, ticket_id: str, from_status: str, fields: dict[str, Any]) -> bool:
        """
        Apply ``fields`` only if the ticket is still in ``from_status``.

        Returns:
            True if the ticket was updated

        Raises:
            StoreWriteFailure: If the update cannot be written
        """


class MongoTicketStore(TicketStore):
    """TicketStore over a Motor collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self._collection = collection

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def ensure_indexes(self) -> None:
        await self._collection.create_index("ticket_id", unique=True)
        await self._collection.create_index([("status", 1), ("priority", 1), ("created_at", -1)])

    async def insert(self, ticket: EscalationTicket) -> None:
        try:
            await self._collection.insert_one(ticket.to_dict())
        except PyMongoError as e:
            raise StoreWriteFailure(
                f"Failed to store escalation ticket: {e}",
                store=STORE_NAME,
                context={"ticket_id": ticket.ticket_id},
            ) from e

    async def get(self, ticket_id: str) -> EscalationTicket | None:
        try:
            doc = await self._collection.find_one({"ticket_id": ticket_id}, {"_id": 0})
        except PyMongoError as e:
            raise StoreReadFailure(
                f"Failed to read escalation ticket: {e}", store=STORE_NAME
            ) from e
        return EscalationTicket.from_dict(doc) if doc else None

    async def find(
        self,
        statuses: tuple[str, ...] | None = None,
        priorities: tuple[str, ...] | None = None,
        limit: int | None = None,
        by_priority: bool = False,
    ) -> list[EscalationTicket]:
        query: dict[str, Any] = {}
        if statuses:
            query["status"] = {"$in": list(statuses)}
        if priorities:
            query["priority"] = {"$in": list(priorities)}
        try:
            if by_priority:
                docs = await self._find_by_priority(query, limit)
            else:
                cursor = self._collection.find(query, {"_id": 0}).sort("created_at", -1)
                if limit:
                    cursor = cursor.limit(limit)
                docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise StoreReadFailure(
                f"Failed to list escalation tickets: {e}", store=STORE_NAME
            ) from e
        return [EscalationTicket.from_dict(doc) for doc in docs]

    async def _find_by_priority(
        self, query: dict[str, Any], limit: int | None
    ) -> list[dict[str, Any]]:
        pipeline: list[dict[str, Any]] = [
            {"$match": query},
            {
                "$addFields": {
                    "_priority_rank": {
                        "$indexOfArray": [list(ESCALATION_PRIORITIES), "$priority"]
                    }
                }
            },
            {"$sort": {"_priority_rank": -1, "created_at": 1}},
        ]
        if limit:
            pipeline.append({"$limit": limit})
        pipeline.append({"$project": {"_id": 0, "_priority_rank": 0}})
        return await self._collection.aggregate(pipeline).to_list(length=None)

    async def transition(self, ticket_id: str, from_status: str, fields: dict[str, Any]) -> bool:
        try:
            result = await self._collection.update_one(
                {"ticket_id": ticket_id, "status": from_status}, {"$set": fields}
            )
        except PyMongoError as e:
            raise StoreWriteFailure(
                f"Failed to update escalation ticket: {e}",
                store=STORE_NAME,
                context={"ticket_id": ticket_id},
            ) from e
        return result.modified_count > 0
