"""
Identity map store.

One document per pseudo identity listing every (channel, hashed channel
user id) pair linked to it with a confidence. Linking is a single atomic
step per document: an existing link only ever has its confidence raised,
a new link is pushed only when absent, and a pair linked to another
pseudo identity is moved rather than duplicated.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..core.types import IdentityMapEntry
from ..exceptions import StoreReadFailure, StoreWriteFailure

logger = logging.getLogger(__name__)

STORE_NAME = "identity_map"


class IdentityMap(ABC):
    """Persistent pseudo identity -> linked channel identities."""

    @abstractmethod
    async def link(
        self,
        pseudo_user_id: str,
        channel: str,
        hashed_channel_user_id: str,
        confidence: float,
    ) -> None:
        """
        Link a channel identity to a pseudo identity.

        Creates the entry when missing. For an existing link the stored
        confidence becomes ``max(stored, confidence)``.

        Raises:
            StoreWriteFailure: If the entry cannot be written
        """

    @abstractmethod
    async def get(self, pseudo_user_id: str) -> IdentityMapEntry | None:
        """
        Entry for ``pseudo_user_id``, or None.

        Raises:
            StoreReadFailure: If the store cannot be read
        """

    @abstractmethod
    async def find_by_link(
        self, channel: str, hashed_channel_user_id: str
    ) -> IdentityMapEntry | None:
        """
        Entry whose linked sessions contain the pair, or None.

        Raises:
            StoreReadFailure: If the store cannot be read
        """

    @abstractmethod
    async def list_pseudo_user_ids(self, limit: int) -> list[str]:
        """
        Up to ``limit`` pseudo user ids, most recently updated first.

        Raises:
            StoreReadFailure: If the store cannot be read
        """


class MongoIdentityMap(IdentityMap):
    """
    IdentityMap over a Motor collection with a unique index on
    ``pseudo_user_id``.
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self._collection = collection

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    async def ensure_indexes(self) -> None:
        await self._collection.create_index("pseudo_user_id", unique=True)
        await self._collection.create_index(
            [("linked_sessions.channel", 1), ("linked_sessions.hashed_channel_user_id", 1)]
        )

    async def _raise_existing(
        self, pseudo_user_id: str, pair: dict[str, str], confidence: float, now: datetime
    ) -> bool:
        result = await self._collection.update_one(
            {"pseudo_user_id": pseudo_user_id, "linked_sessions": {"$elemMatch": pair}},
            {
                "$max": {"linked_sessions.$.confidence": confidence},
                "$set": {"updated_at": now},
            },
        )
        return result.matched_count > 0

    async def link(
        self,
        pseudo_user_id: str,
        channel: str,
        hashed_channel_user_id: str,
        confidence: float,
    ) -> None:
        pair = {"channel": channel, "hashed_channel_user_id": hashed_channel_user_id}
        now = datetime.now(timezone.utc)
        try:
            if await self._raise_existing(pseudo_user_id, pair, confidence, now):
                return

            moved = await self._collection.update_many(
                {
                    "pseudo_user_id": {"$ne": pseudo_user_id},
                    "linked_sessions": {"$elemMatch": pair},
                },
                {"$pull": {"linked_sessions": pair}, "$set": {"updated_at": now}},
            )
            if moved.modified_count:
                logger.info(
                    f"Moved {channel} link to {pseudo_user_id} from "
                    f"{moved.modified_count} other identity entries"
                )

            try:
                await self._collection.update_one(
                    {
                        "pseudo_user_id": pseudo_user_id,
                        "linked_sessions": {"$not": {"$elemMatch": pair}},
                    },
                    {
                        "$push": {"linked_sessions": {**pair, "confidence": confidence}},
                        "$set": {"updated_at": now},
                    },
                    upsert=True,
                )
            except DuplicateKeyError:
                # Another request pushed the same link first.
                await self._raise_existing(pseudo_user_id, pair, confidence, now)
        except PyMongoError as e:
            raise StoreWriteFailure(
                f"Failed to link identity: {e}",
                store=STORE_NAME,
                context={"pseudo_user_id": pseudo_user_id, "channel": channel},
            ) from e

    async def get(self, pseudo_user_id: str) -> IdentityMapEntry | None:
        try:
            doc = await self._collection.find_one({"pseudo_user_id": pseudo_user_id})
        except PyMongoError as e:
            raise StoreReadFailure(f"Failed to read identity entry: {e}", store=STORE_NAME) from e
        return IdentityMapEntry.from_dict(doc) if doc else None

    async def find_by_link(
        self, channel: str, hashed_channel_user_id: str
    ) -> IdentityMapEntry | None:
        try:
            doc = await self._collection.find_one(
                {
                    "linked_sessions": {
                        "$elemMatch": {
                            "channel": channel,
                            "hashed_channel_user_id": hashed_channel_user_id,
                        }
                    }
                }
            )
        except PyMongoError as e:
            raise StoreReadFailure(f"Failed to look up identity link: {e}", store=STORE_NAME) from e
        return IdentityMapEntry.from_dict(doc) if doc else None

    async def list_pseudo_user_ids(self, limit: int) -> list[str]:
        try:
            cursor = (
                self._collection.find({}, {"pseudo_user_id": 1, "_id": 0})
                .sort("updated_at", -1)
                .limit(limit)
            )
            docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise StoreReadFailure(f"Failed to list pseudo user ids: {e}", store=STORE_NAME) from e
        return [doc["pseudo_user_id"] for doc in docs]
