"""
Storage layer.

Interfaces for the key-value session cache, vector indexes, identity map
and escalation tickets, with Redis/MongoDB implementations and in-process
substitutes.
"""

from .base import KeyValueStore, VectorIndex, VectorMatch
from .identity_map import IdentityMap, MongoIdentityMap
from .in_memory import (
    InMemoryIdentityMap,
    InMemoryKeyValueStore,
    InMemoryTicketStore,
    InMemoryVectorIndex,
)
from .long_term import LongTermStore
from .mongo import MongoVectorIndex
from .redis_kv import RedisKeyValueStore
from .short_term import ShortTermStore
from .tickets import MongoTicketStore, TicketStore

__all__ = [
    "KeyValueStore",
    "VectorIndex",
    "VectorMatch",
    "IdentityMap",
    "MongoIdentityMap",
    "TicketStore",
    "MongoTicketStore",
    "MongoVectorIndex",
    "RedisKeyValueStore",
    "InMemoryKeyValueStore",
    "InMemoryVectorIndex",
    "InMemoryIdentityMap",
    "InMemoryTicketStore",
    "ShortTermStore",
    "LongTermStore",
]
