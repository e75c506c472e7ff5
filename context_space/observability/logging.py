"""
Request-scoped logging for CONTEXT_SPACE.

Every inbound turn carries a correlation id (taken from the
``X-Correlation-ID`` header or generated) and, as the pipeline
progresses, the channel, session id and resolved pseudo user id. Both
live in context variables so concurrent requests never see each
other's values; ``get_logger`` returns an adapter that stamps them onto
every record.
"""

import contextvars
import dataclasses
import logging
import uuid
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RequestContext:
    channel: str | None = None
    session_id: str | None = None
    pseudo_user_id: str | None = None

    def fields(self) -> dict[str, str]:
        return {k: v for k, v in dataclasses.asdict(self).items() if v is not None}


_EMPTY_CONTEXT = RequestContext()

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)
_request_context: contextvars.ContextVar[RequestContext] = contextvars.ContextVar(
    "request_context", default=_EMPTY_CONTEXT
)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Use ``correlation_id`` for the current request, generating one when absent."""
    correlation_id = correlation_id or uuid.uuid4().hex
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def set_request_context(
    channel: str | None = None,
    session_id: str | None = None,
    pseudo_user_id: str | None = None,
) -> RequestContext:
    """
    Merge the given fields into the current request context.

    Fields left as None keep their previous value, so the pipeline can add
    the pseudo user id once identity resolution has run.
    """
    updates = {
        name: value
        for name, value in (
            ("channel", channel),
            ("session_id", session_id),
            ("pseudo_user_id", pseudo_user_id),
        )
        if value is not None
    }
    context = dataclasses.replace(_request_context.get(), **updates)
    _request_context.set(context)
    return context


def clear_request_context() -> None:
    _request_context.set(_EMPTY_CONTEXT)


def get_logging_context() -> dict[str, Any]:
    """Correlation id plus the request-context fields that are set."""
    context: dict[str, Any] = _request_context.get().fields()
    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id
    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Adds the request context to each record; explicit ``extra`` keys win."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**get_logging_context(), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.INFO,
    success: bool = True,
    duration_ms: float | None = None,
    **fields: Any,
) -> None:
    """
    One record summarising a store or pipeline operation.

    ``fields`` (result counts and the like) are attached to the record next
    to the request context.
    """
    extra = {**get_logging_context(), **fields, "operation": operation, "success": success}
    outcome = "completed" if success else "failed"
    message = f"{operation} {outcome}"
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
        message += f" in {duration_ms:.2f}ms"
    logger.log(level, message, extra=extra)
