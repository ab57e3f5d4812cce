"""
Health and readiness check endpoints.

Provides liveness and readiness probes for the asset service, verifying
connectivity to MongoDB, Redis, and the configured object store.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field
from redis.asyncio import Redis

from examassets.config import get_settings
from examassets.connections import get_database, get_redis
from examassets.services.assets.deduplicator import AssetDeduplicator
from examassets.services.assets.factory import get_deduplicator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str = Field(..., description="Overall service status.")
    mongo: bool = Field(..., description="MongoDB connectivity.")
    redis: bool = Field(..., description="Redis connectivity.")
    object_store: bool = Field(..., description="Object store reachability.")


class DependencyDetail(BaseModel):
    """Detailed status for a single dependency."""

    healthy: bool = Field(..., description="Whether the dependency is reachable.")
    latency_ms: float = Field(..., description="Round-trip latency in milliseconds.")
    error: str | None = Field(default=None, description="Error message if unhealthy.")


class ReadinessResponse(BaseModel):
    """Detailed readiness check response."""

    status: str = Field(..., description="Overall readiness status: 'ready' or 'degraded'.")
    timestamp: str = Field(..., description="ISO-8601 UTC timestamp of the check.")
    environment: str = Field(..., description="Deployment environment.")
    uploads_in_flight: int = Field(..., description="Uploads currently running in this process.")
    mongo: DependencyDetail = Field(..., description="MongoDB status detail.")
    redis: DependencyDetail = Field(..., description="Redis status detail.")
    object_store: DependencyDetail = Field(..., description="Object store status detail.")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _timed(name: str, probe: Callable[[], Awaitable[object]]) -> DependencyDetail:
    """Run ``probe`` and report (healthy, latency, error).

    A probe returning ``False`` counts as unhealthy.
    """
    start = time.monotonic()
    try:
        result = await probe()
    except Exception as exc:
        latency = (time.monotonic() - start) * 1000
        logger.warning("%s health check failed", name, exc_info=exc)
        return DependencyDetail(healthy=False, latency_ms=round(latency, 2), error=str(exc))

    latency = (time.monotonic() - start) * 1000
    if result is False:
        return DependencyDetail(healthy=False, latency_ms=round(latency, 2), error="unreachable")
    return DependencyDetail(healthy=True, latency_ms=round(latency, 2))


async def _check_all(
    db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
    redis: Redis,  # type: ignore[type-arg]
    deduplicator: AssetDeduplicator,
) -> tuple[DependencyDetail, DependencyDetail, DependencyDetail]:
    mongo, redis_detail, store = await asyncio.gather(
        _timed("MongoDB", lambda: db.command("ping")),
        _timed("Redis", redis.ping),
        _timed("Object store", deduplicator.store.ping),
    )
    return mongo, redis_detail, store


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns the liveness status and connectivity of core dependencies.",
)
async def health_check(
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    redis: Redis = Depends(get_redis),  # type: ignore[type-arg]
    deduplicator: AssetDeduplicator = Depends(get_deduplicator),
) -> HealthResponse:
    mongo, redis_detail, store = await _check_all(db, redis, deduplicator)

    overall = "ok" if (mongo.healthy and store.healthy) else "degraded"

    return HealthResponse(
        status=overall,
        mongo=mongo.healthy,
        redis=redis_detail.healthy,
        object_store=store.healthy,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Detailed readiness check",
    description="Returns detailed connectivity and latency information for all dependencies.",
)
async def readiness_check(
    db: AsyncIOMotorDatabase = Depends(get_database),  # type: ignore[type-arg]
    redis: Redis = Depends(get_redis),  # type: ignore[type-arg]
    deduplicator: AssetDeduplicator = Depends(get_deduplicator),
) -> ReadinessResponse:
    settings = get_settings()

    mongo, redis_detail, store = await _check_all(db, redis, deduplicator)

    all_healthy = mongo.healthy and redis_detail.healthy and store.healthy

    return ReadinessResponse(
        status="ready" if all_healthy else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=settings.ENVIRONMENT,
        uploads_in_flight=deduplicator.in_flight_count,
        mongo=mongo,
        redis=redis_detail,
        object_store=store,
    )
