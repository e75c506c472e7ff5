"""
CONTEXT_SPACE - cross-channel conversational memory

Resolves customer turns from web, WhatsApp, X, email and phone to stable
pseudo identities, keeps short-term (Redis) and long-term (MongoDB vector
search) memory, and runs a rule-based urgency / problem / escalation layer
over every stored turn.
"""

# Channel adapters
from .channels import InboundMessage, NormalizingAdapter, get_adapter
# Configuration
from .config import MemoryConfig
# Core
from .core.connection import ConnectionManager
from .core.context import MemoryContext
from .core.types import Message, SessionEnvelope, SessionMetadata
# Embeddings
from .embeddings import MultiVectorEmbedder
# Errors
from .exceptions import (
    ContextSpaceError,
    EmbeddingFailure,
    ResolutionFailure,
    StoreReadFailure,
    StoreWriteFailure,
    ValidationFailure,
)
# Identity
from .identity import IdentityResolver
# Pipeline
from .pipeline import (
    MemoryPipeline,
    MemoryRetrievalResult,
    StoreResult,
    build_session_envelope,
)
# HTTP
from .routing import create_app, create_router, create_service_app

__version__ = "0.1.0"

__all__ = [
    # Core
    "ConnectionManager",
    "MemoryConfig",
    "MemoryContext",
    "Message",
    "SessionEnvelope",
    "SessionMetadata",
    # Pipeline
    "MemoryPipeline",
    "MemoryRetrievalResult",
    "StoreResult",
    "build_session_envelope",
    "IdentityResolver",
    "MultiVectorEmbedder",
    # Channels / HTTP
    "InboundMessage",
    "NormalizingAdapter",
    "get_adapter",
    "create_app",
    "create_router",
    "create_service_app",
    # Errors
    "ContextSpaceError",
    "EmbeddingFailure",
    "ResolutionFailure",
    "StoreReadFailure",
    "StoreWriteFailure",
    "ValidationFailure",
]
