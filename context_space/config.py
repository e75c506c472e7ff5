"""
Configuration management for CONTEXT_SPACE.

Values come from explicit constructor arguments first and environment
variables second, falling back to the defaults in ``constants``.
"""

import os

from .constants import (
    DEFAULT_DB_NAME,
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_MAX_SESSION_MESSAGES,
    DEFAULT_RETRIEVAL_TOP_K,
    DEFAULT_SESSION_TTL_SECONDS,
)
from .exceptions import ConfigurationError


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer", config_key=name, config_value=raw
        ) from e


class MemoryConfig:
    """
    Memory service configuration.

    Example:
        # Using environment variables
        config = MemoryConfig()
        config.validate()

        # Or overriding selected values
        config = MemoryConfig(mongo_uri="mongodb://localhost:27017", retrieval_top_k=5)
    """

    def __init__(
        self,
        mongo_uri: str | None = None,
        db_name: str | None = None,
        redis_url: str | None = None,
        max_pool_size: int | None = None,
        min_pool_size: int | None = None,
        server_selection_timeout_ms: int | None = None,
        openai_api_key: str | None = None,
        embedding_model: str | None = None,
        embedding_dimensions: int | None = None,
        session_ttl_seconds: int | None = None,
        retrieval_top_k: int | None = None,
        max_session_messages: int | None = None,
        store_read_timeout_ms: int | None = None,
    ):
        """
        Initialize configuration.

        Args:
            mongo_uri: MongoDB connection URI (defaults to MONGODB_URI env var)
            db_name: Database name (defaults to MONGODB_DB_NAME env var)
            redis_url: Redis URL for the session cache (defaults to REDIS_URL)
            max_pool_size: Maximum MongoDB pool size (MONGO_MAX_POOL_SIZE, 50)
            min_pool_size: Minimum MongoDB pool size (MONGO_MIN_POOL_SIZE, 5)
            server_selection_timeout_ms: Server selection timeout (default 5000)
            openai_api_key: API key for the embedding provider (OPENAI_API_KEY)
            embedding_model: Embedding model name (EMBEDDING_MODEL)
            embedding_dimensions: Expected vector size (EMBEDDING_DIMENSIONS)
            session_ttl_seconds: Short-term session expiry (SESSION_TTL_SECONDS)
            retrieval_top_k: Neighbours read per vector index (RETRIEVAL_TOP_K)
            max_session_messages: Message bound per session (MAX_SESSION_MESSAGES)
            store_read_timeout_ms: Per-read timeout, 0 disables (STORE_READ_TIMEOUT_MS)
        """
        self.mongo_uri = mongo_uri or os.getenv("MONGODB_URI", "mongodb://localhost:27017")
        self.db_name = db_name or os.getenv("MONGODB_DB_NAME", DEFAULT_DB_NAME)
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self.max_pool_size = max_pool_size or _env_int("MONGO_MAX_POOL_SIZE", 50)
        self.min_pool_size = min_pool_size or _env_int("MONGO_MIN_POOL_SIZE", 5)
        self.server_selection_timeout_ms = server_selection_timeout_ms or _env_int(
            "MONGO_SERVER_SELECTION_TIMEOUT_MS", 5000
        )
        self.openai_api_key = openai_api_key or os.getenv("OPENAI_API_KEY")
        self.embedding_model = embedding_model or os.getenv(
            "EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL
        )
        self.embedding_dimensions = embedding_dimensions or _env_int(
            "EMBEDDING_DIMENSIONS", DEFAULT_EMBEDDING_DIMENSIONS
        )
        self.session_ttl_seconds = session_ttl_seconds or _env_int(
            "SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL_SECONDS
        )
        self.retrieval_top_k = retrieval_top_k or _env_int(
            "RETRIEVAL_TOP_K", DEFAULT_RETRIEVAL_TOP_K
        )
        self.max_session_messages = max_session_messages or _env_int(
            "MAX_SESSION_MESSAGES", DEFAULT_MAX_SESSION_MESSAGES
        )
        self.store_read_timeout_ms = (
            store_read_timeout_ms
            if store_read_timeout_ms is not None
            else _env_int("STORE_READ_TIMEOUT_MS", 0)
        )

    @property
    def store_read_timeout_seconds(self) -> float | None:
        """Per-read timeout in seconds, or None when reads are not bounded."""
        if self.store_read_timeout_ms <= 0:
            return None
        return self.store_read_timeout_ms / 1000.0

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If required configuration is missing or invalid
        """
        if not self.mongo_uri:
            raise ConfigurationError(
                "mongo_uri is required (set MONGODB_URI environment variable or pass directly)",
                config_key="mongo_uri",
            )

        if not self.db_name:
            raise ConfigurationError(
                "db_name is required (set MONGODB_DB_NAME environment variable or pass directly)",
                config_key="db_name",
            )

        if not self.redis_url:
            raise ConfigurationError("redis_url is required", config_key="redis_url")

        if self.max_pool_size < 1:
            raise ConfigurationError(
                f"max_pool_size must be >= 1, got {self.max_pool_size}",
                config_key="max_pool_size",
                config_value=self.max_pool_size,
            )

        if self.min_pool_size > self.max_pool_size:
            raise ConfigurationError(
                f"min_pool_size ({self.min_pool_size}) cannot be greater than "
                f"max_pool_size ({self.max_pool_size})",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.server_selection_timeout_ms < 1000:
            raise ConfigurationError(
                f"server_selection_timeout_ms must be >= 1000, got "
                f"{self.server_selection_timeout_ms}",
                config_key="server_selection_timeout_ms",
                config_value=self.server_selection_timeout_ms,
            )

        if self.embedding_dimensions < 1:
            raise ConfigurationError(
                f"embedding_dimensions must be >= 1, got {self.embedding_dimensions}",
                config_key="embedding_dimensions",
                config_value=self.embedding_dimensions,
            )

        if self.session_ttl_seconds < 1:
            raise ConfigurationError(
                f"session_ttl_seconds must be >= 1, got {self.session_ttl_seconds}",
                config_key="session_ttl_seconds",
                config_value=self.session_ttl_seconds,
            )

        if self.retrieval_top_k < 1:
            raise ConfigurationError(
                f"retrieval_top_k must be >= 1, got {self.retrieval_top_k}",
                config_key="retrieval_top_k",
                config_value=self.retrieval_top_k,
            )

        if self.max_session_messages < 1:
            raise ConfigurationError(
                f"max_session_messages must be >= 1, got {self.max_session_messages}",
                config_key="max_session_messages",
                config_value=self.max_session_messages,
            )

        if self.store_read_timeout_ms < 0:
            raise ConfigurationError(
                f"store_read_timeout_ms must be >= 0, got {self.store_read_timeout_ms}",
                config_key="store_read_timeout_ms",
                config_value=self.store_read_timeout_ms,
            )
