"""
Health check utilities for CONTEXT_SPACE.

Each check is an async callable returning a HealthCheckResult; the checker
runs them concurrently and folds them into one overall status.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError
from redis.exceptions import RedisError

from ..exceptions import StoreReadFailure

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    name: str
    status: HealthStatus
    message: str
    details: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


HealthCheck = Callable[[], Awaitable[HealthCheckResult]]


class HealthChecker:
    """
    Health checker for the memory service's stores.

    Overall status is ``healthy`` only when every check is healthy and
    ``degraded`` as soon as any check is not.
    """

    def __init__(self, timeout_seconds: float = 5.0):
        self._checks: list[tuple[str, HealthCheck]] = []
        self._timeout_seconds = timeout_seconds

    def register_check(self, name: str, check_func: HealthCheck) -> None:
        """
        Register a health check function.

        Args:
            name: Name reported when the check itself fails or times out
            check_func: Async function that returns HealthCheckResult
        """
        self._checks.append((name, check_func))

    async def _run(self, name: str, check_func: HealthCheck) -> HealthCheckResult:
        try:
            return await asyncio.wait_for(check_func(), timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            return HealthCheckResult(
                name=name,
                status=HealthStatus.UNHEALTHY,
                message=f"Check timed out after {self._timeout_seconds}s",
            )
        except (
            RuntimeError,
            ValueError,
            TypeError,
            AttributeError,
            ConnectionError,
            OSError,
        ) as e:
            logger.error(f"Health check {name} failed: {e}", exc_info=True)
            return HealthCheckResult(
                name=name,
                status=HealthStatus.UNKNOWN,
                message=f"Check failed: {e}",
            )

    async def check_all(self) -> dict[str, Any]:
        """
        Run all registered health checks concurrently.

        Returns:
            Dictionary with overall status and individual check results
        """
        results = await asyncio.gather(*(self._run(name, fn) for name, fn in self._checks))

        if results and all(r.status == HealthStatus.HEALTHY for r in results):
            overall_status = HealthStatus.HEALTHY
        else:
            overall_status = HealthStatus.DEGRADED

        return {
            "status": overall_status.value,
            "timestamp": datetime.now().isoformat(),
            "checks": {r.name: r.to_dict() for r in results},
        }


async def check_mongodb_health(mongo_client: Any | None) -> HealthCheckResult:
    """
    Check MongoDB connection health with a ping.

    Args:
        mongo_client: Motor client instance
    """
    if mongo_client is None:
        return HealthCheckResult(
            name="mongodb",
            status=HealthStatus.UNHEALTHY,
            message="MongoDB client not initialized",
        )

    try:
        await mongo_client.admin.command("ping")
        return HealthCheckResult(
            name="mongodb",
            status=HealthStatus.HEALTHY,
            message="MongoDB connection is healthy",
        )
    except (
        ConnectionFailure,
        OperationFailure,
        ServerSelectionTimeoutError,
    ) as e:
        return HealthCheckResult(
            name="mongodb",
            status=HealthStatus.UNHEALTHY,
            message=f"MongoDB health check failed: {e}",
        )


async def check_redis_health(redis_client: Any | None) -> HealthCheckResult:
    """
    Check the session cache with a PING.

    Args:
        redis_client: ``redis.asyncio.Redis`` instance
    """
    if redis_client is None:
        return HealthCheckResult(
            name="redis",
            status=HealthStatus.UNHEALTHY,
            message="Redis client not initialized",
        )

    try:
        await redis_client.ping()
        return HealthCheckResult(
            name="redis",
            status=HealthStatus.HEALTHY,
            message="Redis connection is healthy",
        )
    except (RedisError, OSError) as e:
        return HealthCheckResult(
            name="redis",
            status=HealthStatus.UNHEALTHY,
            message=f"Redis health check failed: {e}",
        )


async def check_vector_index_health(name: str, index: Any | None) -> HealthCheckResult:
    """
    Check that a vector index answers a count query.

    Args:
        name: Name reported for this index (short_term_vector, long_term, ...)
        index: VectorIndex instance
    """
    if index is None:
        return HealthCheckResult(
            name=name,
            status=HealthStatus.UNHEALTHY,
            message="Vector index not configured",
        )

    try:
        points = await index.count()
    except StoreReadFailure as e:
        return HealthCheckResult(
            name=name,
            status=HealthStatus.UNHEALTHY,
            message=f"Vector index health check failed: {e.message}",
        )
    return HealthCheckResult(
        name=name,
        status=HealthStatus.HEALTHY,
        message="Vector index is reachable",
        details={"points": points},
    )
