"""
Channel identifier hashing.

Raw channel-local identifiers (cookies, phone numbers, handles, email
addresses) are never stored; only their one-way hash is.
"""

import hashlib
from collections.abc import Callable

Hasher = Callable[[str], str]


def sha256_hex(raw_identifier: str) -> str:
    """Deterministic, one-way hash of a raw channel identifier."""
    return hashlib.sha256(raw_identifier.encode("utf-8")).hexdigest()
