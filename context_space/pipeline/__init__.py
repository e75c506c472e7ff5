"""
Store/retrieve orchestration and envelope construction.
"""

from .envelope import build_session_envelope
from .memory_pipeline import (
    ContextReads,
    MemoryPipeline,
    MemoryRetrievalResult,
    StoreResult,
    build_memory_block,
    frustration_level,
)

__all__ = [
    "build_session_envelope",
    "ContextReads",
    "MemoryPipeline",
    "MemoryRetrievalResult",
    "StoreResult",
    "build_memory_block",
    "frustration_level",
]
