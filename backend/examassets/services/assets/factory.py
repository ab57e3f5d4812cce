"""
Factory for the process-wide upload services.

Builds the registry, object store and deduplicator from configuration.
One deduplicator per process owns the in-flight map, so concurrent
requests handled by this process share its guard.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from fastapi import Depends

from examassets.config import Settings, get_settings
from examassets.connections import get_database_sync
from examassets.db.indexes import UPLOAD_BATCHES_COLLECTION
from examassets.services.assets.batch import BatchRepository, BatchUploadCoordinator
from examassets.services.assets.deduplicator import AssetDeduplicator
from examassets.services.assets.object_store import LocalObjectStore, ObjectStore, S3ObjectStore
from examassets.services.assets.registry import (
    AssetRegistry,
    CachedAssetRegistry,
    MongoAssetRegistry,
)

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

_deduplicator_instance: AssetDeduplicator | None = None
_deduplicator_lock = threading.Lock()


def build_object_store(settings: Settings) -> ObjectStore:
    """Create the object store selected by OBJECT_STORE_BACKEND."""
    if settings.OBJECT_STORE_BACKEND == "s3":
        if not settings.S3_BUCKET:
            raise RuntimeError("S3_BUCKET must be set when OBJECT_STORE_BACKEND=s3")
        public_url = settings.S3_PUBLIC_URL or (
            f"{settings.S3_ENDPOINT_URL.rstrip('/')}/{settings.S3_BUCKET}"
            if settings.S3_ENDPOINT_URL
            else f"https://{settings.S3_BUCKET}.s3.amazonaws.com"
        )
        return S3ObjectStore(
            bucket=settings.S3_BUCKET,
            public_url=public_url,
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        )
    return LocalObjectStore(settings.LOCAL_STORAGE_PATH, settings.PUBLIC_BASE_URL)


def build_registry(
    settings: Settings,
    db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
    redis: Redis | None = None,  # type: ignore[type-arg]
) -> AssetRegistry:
    """Create the Mongo registry, wrapped in the Redis cache when enabled."""
    registry: AssetRegistry = MongoAssetRegistry(
        db[settings.REGISTRY_COLLECTION],
        write_mode=settings.REGISTRY_WRITE_MODE,
    )
    if settings.REGISTRY_CACHE_ENABLED and redis is not None:
        registry = CachedAssetRegistry(registry, redis, ttl=settings.REGISTRY_CACHE_TTL_SECONDS)
    return registry


def init_deduplicator(
    db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
    redis: Redis | None = None,  # type: ignore[type-arg]
    settings: Settings | None = None,
) -> AssetDeduplicator:
    """Create the process-wide deduplicator. Called once at startup."""
    global _deduplicator_instance
    settings = settings or get_settings()

    with _deduplicator_lock:
        _deduplicator_instance = AssetDeduplicator(
            build_registry(settings, db, redis),
            build_object_store(settings),
            compression_enabled=settings.COMPRESSION_ENABLED,
            max_size_bytes=settings.compression_max_size_bytes,
            max_dimension=settings.COMPRESSION_MAX_DIMENSION,
        )
    logger.info(
        "Asset deduplicator ready",
        extra={
            "object_store": settings.OBJECT_STORE_BACKEND,
            "registry_write_mode": settings.REGISTRY_WRITE_MODE,
            "registry_cache": settings.REGISTRY_CACHE_ENABLED and redis is not None,
        },
    )
    return _deduplicator_instance


def reset_deduplicator() -> None:
    global _deduplicator_instance
    with _deduplicator_lock:
        _deduplicator_instance = None


def get_deduplicator() -> AssetDeduplicator:
    """FastAPI dependency returning the process-wide deduplicator."""
    if _deduplicator_instance is None:
        raise RuntimeError("Asset deduplicator is not initialised. Call init_deduplicator() first.")
    return _deduplicator_instance


def get_batch_coordinator(
    deduplicator: AssetDeduplicator = Depends(get_deduplicator),
) -> BatchUploadCoordinator:
    """FastAPI dependency returning a coordinator over the shared deduplicator."""
    return BatchUploadCoordinator(deduplicator, concurrency=get_settings().BATCH_CONCURRENCY)


async def get_batch_repository() -> BatchRepository:
    """FastAPI dependency returning the batch report repository."""
    return BatchRepository(get_database_sync()[UPLOAD_BATCHES_COLLECTION])
