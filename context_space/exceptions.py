"""
Custom exceptions for CONTEXT_SPACE.

Every error raised by the memory service derives from ContextSpaceError,
which stays compatible with RuntimeError and carries a stable error code
that the HTTP layer reports instead of internal details.
"""

from typing import Any, Dict, Optional


class ContextSpaceError(RuntimeError):
    """
    Base exception for context space errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (store,
                 session_id, field, etc.)
        error_code: Stable category reported to callers
    """

    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class EmbeddingFailure(ContextSpaceError):
    """
    Raised when the embedding provider cannot produce vectors.

    Fatal to the request: nothing is remembered without a vector.

    Attributes:
        model: Embedding model that was requested (if available)
    """

    error_code = "EMBEDDING_FAILURE"

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if model:
            context["model"] = model
        super().__init__(message, context=context)
        self.model = model


class StoreReadFailure(ContextSpaceError):
    """
    Raised by a store adapter when a read fails.

    The pipeline absorbs it and continues as if no prior context existed.

    Attributes:
        store: Logical store that failed (short_term_kv, long_term, ...)
    """

    error_code = "STORE_READ_FAILURE"

    def __init__(
        self,
        message: str,
        store: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["store"] = store
        super().__init__(message, context=context)
        self.store = store


class StoreWriteFailure(ContextSpaceError):
    """
    Raised by a store adapter when a write fails.

    Always propagates to the caller, tagged with the failing store.

    Attributes:
        store: Logical store that failed (short_term_kv, short_term_vector,
               long_term, identity_map, escalation_tickets)
    """

    error_code = "STORE_WRITE_FAILURE"

    def __init__(
        self,
        message: str,
        store: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["store"] = store
        super().__init__(message, context=context)
        self.store = store


class ValidationFailure(ContextSpaceError):
    """
    Raised when an inbound request is rejected before any store access.

    Attributes:
        field: Name of the violated field
        value: Offending value (if safe to report)
    """

    error_code = "VALIDATION_FAILURE"

    def __init__(
        self,
        message: str,
        field: str,
        value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["field"] = field
        if value is not None:
            context["value"] = value
        super().__init__(message, context=context)
        self.field = field
        self.value = value


class ResolutionFailure(ContextSpaceError):
    """
    Raised when identity scoring fails internally.

    The resolver catches it and mints a new pseudo identity instead.
    """

    error_code = "RESOLUTION_FAILURE"


class ConfigurationError(ContextSpaceError, ValueError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
    """

    error_code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class InitializationError(ContextSpaceError):
    """
    Raised when the store clients cannot be brought up.

    Attributes:
        mongo_uri: MongoDB connection URI (if available)
        db_name: Database name (if available)
    """

    error_code = "INITIALIZATION_ERROR"

    def __init__(
        self,
        message: str,
        mongo_uri: Optional[str] = None,
        db_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if mongo_uri:
            context["mongo_uri"] = mongo_uri
        if db_name:
            context["db_name"] = db_name
        super().__init__(message, context=context)
        self.mongo_uri = mongo_uri
        self.db_name = db_name
