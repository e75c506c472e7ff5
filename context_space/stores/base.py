"""
Store interfaces.

The memory pipeline talks to its stores only through these interfaces, so
the Redis/MongoDB implementations and the in-process ones used by tests
are interchangeable. Implementations translate driver errors into
StoreReadFailure / StoreWriteFailure tagged with their logical store name.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class VectorMatch:
    """A ranked nearest-neighbour result."""

    id: str
    score: float
    vector: list[float]
    payload: dict[str, Any] = field(default_factory=dict)


class KeyValueStore(ABC):
    """String key-value store with per-key expiry."""

    def __init__(self, store_name: str):
        self.store_name = store_name

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """
        Get the value stored under ``key``.

        Returns:
            The value, or None when the key is absent or expired

        Raises:
            StoreReadFailure: If the store cannot be read
        """

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """
        Store ``value`` under ``key``, resetting its expiry to ``ttl_seconds``.

        Raises:
            StoreWriteFailure: If the value cannot be written
        """

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the store answers."""


class VectorIndex(ABC):
    """
    Nearest-neighbour index over cosine similarity.

    Each point is an id, one indexed vector and a payload dictionary.
    """

    def __init__(self, store_name: str):
        self.store_name = store_name

    @abstractmethod
    async def upsert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        """
        Insert a point or replace the point with the same id.

        Raises:
            StoreWriteFailure: If the point cannot be written
        """

    @abstractmethod
    async def insert(self, point_id: str, vector: list[float], payload: dict[str, Any]) -> None:
        """
        Insert a new point; an existing id is never overwritten.

        Raises:
            StoreWriteFailure: If the point cannot be written or the id exists
        """

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """
        Return up to ``top_k`` points ranked by similarity to ``vector``.

        Args:
            vector: Query vector
            top_k: Maximum number of matches
            filter: Optional equality filter on payload fields

        Raises:
            StoreReadFailure: If the index cannot be queried
        """

    @abstractmethod
    async def count(self) -> int:
        """
        Number of points in the index.

        Raises:
            StoreReadFailure: If the index cannot be read
        """
