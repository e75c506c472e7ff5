"""
FastAPI routes and app factories.
"""

from .api import (
    connection_lifespan,
    create_app,
    create_router,
    create_service_app,
    error_body,
    get_memory_context,
)

__all__ = [
    "connection_lifespan",
    "create_app",
    "create_router",
    "create_service_app",
    "error_body",
    "get_memory_context",
]
