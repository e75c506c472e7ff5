"""
HTTP surface.

``create_router`` builds the APIRouter over a MemoryContext dependency;
``create_app`` mounts it on a FastAPI app together with the error
handlers and the correlation-id middleware.

Error bodies are ``{"error": <generic message>, "code": <error code>}``
(plus ``"field"`` for validation failures). Internal details are logged,
never returned.
"""

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from ..channels.adapters import get_adapter
from ..config import MemoryConfig
from ..core.connection import ConnectionManager
from ..core.context import MemoryContext
from ..exceptions import (
    ContextSpaceError,
    EmbeddingFailure,
    StoreReadFailure,
    StoreWriteFailure,
    ValidationFailure,
)
from ..identity.resolver import IdentityResolver
from ..intelligence.escalation import EscalationManager
from ..observability.logging import (
    clear_request_context,
    get_correlation_id,
    set_correlation_id,
)
from ..pipeline.envelope import build_session_envelope
from ..pipeline.memory_pipeline import MemoryPipeline

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

ERROR_RESPONSES: dict[type[ContextSpaceError], tuple[int, str]] = {
    ValidationFailure: (400, "Invalid request"),
    EmbeddingFailure: (503, "Embedding service unavailable"),
    StoreReadFailure: (503, "Storage unavailable"),
    StoreWriteFailure: (503, "Storage unavailable"),
}


class MessageBody(BaseModel):
    text: str
    role: str = "user"
    summary: str | None = None


class StoreRequest(BaseModel):
    channel: str
    channel_user_id: str
    message: MessageBody
    metadata: dict[str, Any] | None = None


class RetrieveRequest(BaseModel):
    session_id: str
    query: str


class TicketUpdateRequest(BaseModel):
    status: str
    assigned_to: str | None = None


def get_memory_context(request: Request) -> MemoryContext:
    """Get the MemoryContext from app state."""
    context = getattr(request.app.state, "memory_context", None)
    if context is None:
        raise HTTPException(503, "Memory context not initialized")
    return context


def create_router(
    context_provider: Callable[..., MemoryContext] = get_memory_context,
) -> APIRouter:
    """
    Build the API router.

    Args:
        context_provider: FastAPI dependency returning the MemoryContext
    """
    router = APIRouter()

    @router.post("/memory/store")
    async def store_memory(
        body: StoreRequest, context: MemoryContext = Depends(context_provider)
    ) -> dict[str, Any]:
        envelope = build_session_envelope(
            channel=body.channel,
            channel_user_id=body.channel_user_id,
            text=body.message.text,
            role=body.message.role,
            summary=body.message.summary,
            metadata=body.metadata,
            hasher=context.hasher,
        )
        result = await MemoryPipeline(context).store(envelope)
        return result.to_dict()

    @router.post("/memory/retrieve")
    async def retrieve_memory(
        body: RetrieveRequest, context: MemoryContext = Depends(context_provider)
    ) -> dict[str, Any]:
        if not body.session_id.strip():
            raise ValidationFailure("session_id is required", field="session_id")
        if not body.query.strip():
            raise ValidationFailure("query is required", field="query")
        result = await MemoryPipeline(context).retrieve(body.session_id, body.query)
        return result.to_dict()

    @router.post("/channels/{channel}/inbound")
    async def channel_inbound(
        channel: str, request: Request, context: MemoryContext = Depends(context_provider)
    ) -> dict[str, Any]:
        adapter = get_adapter(channel)
        try:
            payload = await request.json()
        except ValueError as e:
            raise ValidationFailure("Body must be a JSON object", field="body") from e
        if not isinstance(payload, dict):
            raise ValidationFailure("Body must be a JSON object", field="body")
        inbound = adapter.normalize(payload)
        result = await MemoryPipeline(context).store(inbound.to_envelope(context.hasher))
        return adapter.format(result, inbound)

    @router.get("/identity/lookup")
    async def lookup_identity(
        channel: str = Query(...),
        channel_user_id: str = Query(...),
        context: MemoryContext = Depends(context_provider),
    ) -> dict[str, Any]:
        if not channel.strip() or not channel_user_id.strip():
            raise ValidationFailure(
                "channel and channel_user_id are required", field="channel_user_id"
            )
        resolver = IdentityResolver(context.identity_map, hasher=context.hasher)
        pseudo_user_id = await resolver.find_pseudo_user_id(channel, channel_user_id)
        if pseudo_user_id is None:
            return {"found": False}
        sessions = await resolver.get_linked_sessions(pseudo_user_id)
        return {
            "found": True,
            "pseudo_user_id": pseudo_user_id,
            "linked_sessions": [s.to_dict() for s in sessions],
        }

    @router.get("/identity/{pseudo_user_id}/sessions")
    async def linked_sessions(
        pseudo_user_id: str, context: MemoryContext = Depends(context_provider)
    ) -> dict[str, Any]:
        resolver = IdentityResolver(context.identity_map, hasher=context.hasher)
        sessions = await resolver.get_linked_sessions(pseudo_user_id)
        return {
            "pseudo_user_id": pseudo_user_id,
            "channels": sorted({s.channel for s in sessions}),
            "linked_sessions": [s.to_dict() for s in sessions],
        }

    @router.get("/escalations/pending")
    async def pending_escalations(
        limit: int = Query(50, ge=1, le=500),
        context: MemoryContext = Depends(context_provider),
    ) -> dict[str, Any]:
        tickets = await EscalationManager(context.tickets).list_pending(limit)
        return {"count": len(tickets), "tickets": [t.to_dict() for t in tickets]}

    @router.get("/escalations/critical")
    async def critical_escalations(
        limit: int = Query(20, ge=1, le=500),
        context: MemoryContext = Depends(context_provider),
    ) -> dict[str, Any]:
        tickets = await EscalationManager(context.tickets).list_critical(limit)
        return {"count": len(tickets), "tickets": [t.to_dict() for t in tickets]}

    @router.put("/escalations/{ticket_id}")
    async def update_escalation(
        ticket_id: str,
        body: TicketUpdateRequest,
        context: MemoryContext = Depends(context_provider),
    ) -> dict[str, Any]:
        ticket = await EscalationManager(context.tickets).update_status(
            ticket_id, body.status, body.assigned_to
        )
        return {"success": True, "ticket": ticket.to_dict()}

    @router.get("/analytics/escalations")
    async def escalation_analytics(
        context: MemoryContext = Depends(context_provider),
    ) -> dict[str, Any]:
        return await EscalationManager(context.tickets).analytics()

    @router.get("/health")
    async def health(context: MemoryContext = Depends(context_provider)) -> JSONResponse:
        report = await context.health.check_all()
        status_code = 200 if report["status"] == "healthy" else 503
        return JSONResponse(report, status_code=status_code)

    return router


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id (from the request header or a new one) to each request."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


def error_body(error: ContextSpaceError) -> tuple[int, dict[str, Any]]:
    """Status code and public body for ``error``."""
    status_code, message = 500, "Internal server error"
    for error_type, response in ERROR_RESPONSES.items():
        if isinstance(error, error_type):
            status_code, message = response
            break
    body: dict[str, Any] = {"error": message, "code": error.error_code}
    if isinstance(error, ValidationFailure):
        body["field"] = error.field
    return status_code, body


async def handle_context_space_error(request: Request, exc: ContextSpaceError) -> JSONResponse:
    status_code, body = error_body(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(
        f"{request.method} {request.url.path} failed: {exc}",
        extra={"correlation_id": get_correlation_id(), "code": exc.error_code},
    )
    return JSONResponse(body, status_code=status_code)


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    location = errors[0].get("loc", ()) if errors else ()
    fields = [str(part) for part in location if part not in ("body", "query", "path")]
    return JSONResponse(
        {
            "error": "Invalid request",
            "code": ValidationFailure.error_code,
            "field": ".".join(fields) or "body",
        },
        status_code=400,
    )


def create_app(
    context: MemoryContext | None = None,
    title: str = "CONTEXT_SPACE",
    lifespan: Callable | None = None,
) -> FastAPI:
    """
    FastAPI app serving the memory routes.

    Args:
        context: MemoryContext to serve; may also be assigned to
            ``app.state.memory_context`` later (e.g. in a lifespan handler)
        lifespan: Optional FastAPI lifespan handler
    """
    app = FastAPI(title=title, lifespan=lifespan)
    app.state.memory_context = context
    app.add_middleware(CorrelationIdMiddleware)
    app.add_exception_handler(ContextSpaceError, handle_context_space_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.include_router(create_router())
    return app


def connection_lifespan(config: MemoryConfig | None = None) -> Callable:
    """
    Lifespan handler that opens the store connections on startup, serves a
    MemoryContext wired over them and closes them on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        memory_config = config or MemoryConfig()
        memory_config.validate()
        manager = ConnectionManager(memory_config)
        await manager.initialize()
        try:
            context = MemoryContext.from_connection(manager)
            await context.ensure_indexes()
            app.state.memory_context = context
            logger.info(f"Memory service ready (db: {memory_config.db_name})")
            yield
        finally:
            app.state.memory_context = None
            await manager.shutdown()

    return lifespan


def create_service_app(config: MemoryConfig | None = None) -> FastAPI:
    """
    App backed by live MongoDB/Redis connections.

    Example:
        app = create_service_app()
        # uvicorn module:app
    """
    return create_app(lifespan=connection_lifespan(config))
