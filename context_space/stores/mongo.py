"""
MongoDB-backed vector index.

Points are documents keyed by ``_id`` with the indexed vector stored in
one field and the payload fields alongside it. Queries use the Atlas
``$vectorSearch`` aggregation stage against a cosine vector index.
"""

import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError
from pymongo.operations import SearchIndexModel

from ..constants import VECTOR_INDEX_NAME, VECTOR_NUM_CANDIDATES_MULTIPLIER
from ..exceptions import StoreReadFailure, StoreWriteFailure
from .base import VectorIndex, VectorMatch

logger = logging.getLogger(__name__)

SCORE_FIELD = "_score"


class MongoVectorIndex(VectorIndex):
    """
    VectorIndex over a Motor collection.

    Example:
        index = MongoVectorIndex(db.long_memory, store_name="long_term")
        await index.insert("P-1-1700000000", vector, {"summary": "..."})
        matches = await index.query(vector, top_k=10)
    """

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        store_name: str,
        index_name: str = VECTOR_INDEX_NAME,
        vector_field: str = "intent_vector",
        filter_fields: tuple[str, ...] = ("pseudo_user_id", "channel"),
    ):
        super().__init__(store_name)
        self._collection = collection
        self.index_name = index_name
        self.vector_field = vector_field
        self.filter_fields = filter_fields

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection

    def search_index_definition(self, dimensions: int) -> dict[str, Any]:
        """Atlas vectorSearch index definition for this collection."""
        fields: list[dict[str, Any]] = [
            {
                "type": "vector",
                "path": self.vector_field,
                "numDimensions": dimensions,
                "similarity": "cosine",
            }
        ]
        fields.extend({"type": "filter", "path": name} for name in self.filter_fields)
        return {"fields": fields}

    def _document(self, point_id: str, vector: list[float], payload: dict[str, Any]):
        return {"_id": point_id, **payload, self.vector_field: list(vector)}

    async def upsert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        try:
            await self._collection.replace_one(
                {"_id": point_id}, self._document(point_id, vector, payload), upsert=True
            )
        except PyMongoError as e:
            raise StoreWriteFailure(
                f"Failed to upsert point into {self.store_name}: {e}",
                store=self.store_name,
                context={"point_id": point_id},
            ) from e

    async def insert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        try:
            await self._collection.insert_one(self._document(point_id, vector, payload))
        except DuplicateKeyError as e:
            raise StoreWriteFailure(
                f"Point {point_id} already exists in {self.store_name}",
                store=self.store_name,
                context={"point_id": point_id},
            ) from e
        except PyMongoError as e:
            raise StoreWriteFailure(
                f"Failed to insert point into {self.store_name}: {e}",
                store=self.store_name,
                context={"point_id": point_id},
            ) from e

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        search: dict[str, Any] = {
            "index": self.index_name,
            "path": self.vector_field,
            "queryVector": list(vector),
            "numCandidates": top_k * VECTOR_NUM_CANDIDATES_MULTIPLIER,
            "limit": top_k,
        }
        if filter:
            search["filter"] = filter

        pipeline = [
            {"$vectorSearch": search},
            {"$set": {SCORE_FIELD: {"$meta": "vectorSearchScore"}}},
        ]
        try:
            docs = await self._collection.aggregate(pipeline).to_list(length=top_k)
        except PyMongoError as e:
            raise StoreReadFailure(
                f"Vector search on {self.store_name} failed: {e}",
                store=self.store_name,
            ) from e

        matches = []
        for doc in docs:
            point_id = str(doc.pop("_id"))
            score = float(doc.pop(SCORE_FIELD, 0.0))
            stored_vector = doc.pop(self.vector_field, [])
            matches.append(
                VectorMatch(id=point_id, score=score, vector=list(stored_vector), payload=doc)
            )
        return matches

    async def count(self) -> int:
        try:
            return await self._collection.count_documents({})
        except PyMongoError as e:
            raise StoreReadFailure(
                f"Failed to count points in {self.store_name}: {e}",
                store=self.store_name,
            ) from e

    async def ensure_search_index(self, dimensions: int) -> None:
        """
        Submit the vector search index definition if it is missing.

        Clusters without Atlas Search reject the command; that is logged
        and queries will fail (and degrade) until an index exists.
        """
        model = SearchIndexModel(
            definition=self.search_index_definition(dimensions),
            name=self.index_name,
            type="vectorSearch",
        )
        try:
            existing = await self._collection.list_search_indexes(self.index_name).to_list(
                length=1
            )
            if existing:
                return
            await self._collection.create_search_index(model=model)
            logger.info(f"Submitted vector search index '{self.index_name}' for {self.store_name}")
        except OperationFailure as e:
            if "IndexAlreadyExists" in str(e) or "DuplicateIndexName" in str(e):
                logger.warning(f"Index '{self.index_name}' was created by another process.")
                return
            logger.warning(f"Could not create vector search index '{self.index_name}': {e}")
