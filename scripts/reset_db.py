#!/usr/bin/env python3
"""
Database reset script for the exam asset service.

Drops the batch report collection and, with --include-registry, the
fingerprint registry plus its Redis cache. Dropping the registry does not
delete stored objects; later uploads of the same content will store them
again. Intended for development and testing environments only. Prompts
for confirmation unless --force is specified.

Usage:
    python scripts/reset_db.py
    python scripts/reset_db.py --mongo-url mongodb://localhost:27017 --db exam_portal
    python scripts/reset_db.py --include-registry --redis-url redis://localhost:6379/0 --force
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from motor.motor_asyncio import AsyncIOMotorClient
from redis.asyncio import Redis

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("reset_db")

BATCH_COLLECTIONS = ["upload_batches"]
REGISTRY_CACHE_PATTERN = "examassets:registry:*"


async def _clear_registry_cache(redis_url: str) -> int:
    redis = Redis.from_url(redis_url, decode_responses=True)
    deleted = 0
    try:
        async for key in redis.scan_iter(match=REGISTRY_CACHE_PATTERN, count=500):
            deleted += await redis.delete(key)
    finally:
        await redis.aclose()
    return deleted


async def reset(
    mongo_url: str,
    db_name: str,
    *,
    registry_collection: str,
    include_registry: bool,
    redis_url: str | None,
    force: bool = False,
) -> None:
    """Drop the service's collections from the database.

    Args:
        mongo_url: MongoDB connection URI.
        db_name: Database name to reset.
        registry_collection: Name of the fingerprint registry collection.
        include_registry: Also drop the registry and flush its cache.
        redis_url: Redis URI holding the registry cache, if any.
        force: If True, skip confirmation prompt.
    """
    targets = list(BATCH_COLLECTIONS)
    if include_registry:
        targets.append(registry_collection)

    if not force:
        print(f"\nThis will DROP {', '.join(targets)} in database '{db_name}' at {mongo_url}")
        print("This action is irreversible.\n")
        confirmation = input("Type the database name to confirm: ").strip()
        if confirmation != db_name:
            print("Confirmation failed. Aborting.")
            sys.exit(1)

    client: AsyncIOMotorClient = AsyncIOMotorClient(mongo_url)  # type: ignore[type-arg]
    db = client[db_name]

    logger.info("Resetting database: %s", db_name)

    existing_collections = await db.list_collection_names()

    dropped_count = 0
    for collection_name in targets:
        if collection_name in existing_collections:
            doc_count = await db[collection_name].count_documents({})
            await db[collection_name].drop()
            logger.info("  Dropped collection: %s (%d documents)", collection_name, doc_count)
            dropped_count += 1

    client.close()

    if include_registry and redis_url:
        deleted = await _clear_registry_cache(redis_url)
        logger.info("  Deleted %d cached registry entries", deleted)

    logger.info("Reset complete. Dropped %d collections from '%s'.", dropped_count, db_name)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Reset the exam asset service's MongoDB collections."
    )
    parser.add_argument(
        "--mongo-url",
        default="mongodb://localhost:27017",
        help="MongoDB connection URI (default: mongodb://localhost:27017)",
    )
    parser.add_argument(
        "--db",
        default="exam_portal",
        help="Database name (default: exam_portal)",
    )
    parser.add_argument(
        "--registry-collection",
        default="image_index",
        help="Fingerprint registry collection (default: image_index)",
    )
    parser.add_argument(
        "--include-registry",
        action="store_true",
        help="Also drop the fingerprint registry and its Redis cache.",
    )
    parser.add_argument(
        "--redis-url",
        default=None,
        help="Redis URI of the registry cache (default: skip cache flush)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompt.",
    )
    args = parser.parse_args()

    asyncio.run(
        reset(
            args.mongo_url,
            args.db,
            registry_collection=args.registry_collection,
            include_registry=args.include_registry,
            redis_url=args.redis_url,
            force=args.force,
        )
    )


if __name__ == "__main__":
    main()
