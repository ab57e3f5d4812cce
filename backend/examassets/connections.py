"""
Connections to the service's backing stores.

MongoDB holds the fingerprint registry and the batch reports; Redis caches
registry lookups. Each process owns one Motor client and one Redis pool,
opened by ``open_connections`` at startup and released by
``close_connections`` at shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from urllib.parse import urlsplit, urlunsplit

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from redis.asyncio import ConnectionPool, Redis

from examassets.config import Settings, get_settings

logger = logging.getLogger(__name__)

_mongo_client: AsyncIOMotorClient | None = None  # type: ignore[type-arg]
_database: AsyncIOMotorDatabase | None = None  # type: ignore[type-arg]
_redis_pool: ConnectionPool | None = None
_redis: Redis | None = None  # type: ignore[type-arg]


def mask_url(url: str) -> str:
    """Hide the credentials of a connection URI for safe logging."""
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit(parts._replace(netloc=f"***@{host}"))


async def open_connections(settings: Settings | None = None, *, with_redis: bool = True) -> None:
    """Connect to MongoDB and, unless ``with_redis`` is False, to Redis.

    Both connections are verified with a ping, so an unreachable store
    fails startup instead of the first upload.
    """
    settings = settings or get_settings()
    await _open_mongodb(settings)
    if with_redis:
        await _open_redis(settings)


async def _open_mongodb(settings: Settings) -> None:
    global _mongo_client, _database  # noqa: PLW0603

    logger.info(
        "Connecting to MongoDB",
        extra={"mongo_url": mask_url(settings.MONGO_URL), "db": settings.MONGO_DB_NAME},
    )
    # Registry timestamps are compared with aware datetimes.
    _mongo_client = AsyncIOMotorClient(
        settings.MONGO_URL,
        maxPoolSize=20,
        minPoolSize=2,
        connectTimeoutMS=5_000,
        serverSelectionTimeoutMS=5_000,
        retryWrites=True,
        tz_aware=True,
    )
    _database = _mongo_client[settings.MONGO_DB_NAME]
    await _mongo_client.admin.command("ping")
    logger.info("MongoDB connection established")


async def _open_redis(settings: Settings) -> None:
    global _redis_pool, _redis  # noqa: PLW0603

    logger.info("Connecting to Redis", extra={"redis_url": mask_url(settings.REDIS_URL)})
    _redis_pool = ConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=20,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
        health_check_interval=30,
    )
    _redis = Redis(connection_pool=_redis_pool)
    await _redis.ping()
    logger.info("Redis connection established")


async def close_connections() -> None:
    """Release whatever ``open_connections`` opened. Safe to call twice."""
    global _mongo_client, _database, _redis_pool, _redis  # noqa: PLW0603

    if _redis is not None:
        await _redis.aclose()
    if _redis_pool is not None:
        await _redis_pool.aclose()
    if _mongo_client is not None:
        _mongo_client.close()
        logger.info("Connections closed")

    _mongo_client = _database = None
    _redis_pool = _redis = None


def get_database_sync() -> AsyncIOMotorDatabase:  # type: ignore[type-arg]
    """Return the database handle for code running outside a request."""
    if _database is None:
        raise RuntimeError("MongoDB is not connected. Call open_connections() first.")
    return _database


def get_redis_sync() -> Redis:  # type: ignore[type-arg]
    if _redis is None:
        raise RuntimeError("Redis is not connected. Call open_connections() first.")
    return _redis


async def get_database() -> AsyncGenerator[AsyncIOMotorDatabase, None]:  # type: ignore[type-arg]
    """FastAPI dependency yielding the database handle."""
    yield get_database_sync()


async def get_redis() -> AsyncGenerator[Redis, None]:  # type: ignore[type-arg]
    """FastAPI dependency yielding the Redis client."""
    yield get_redis_sync()
