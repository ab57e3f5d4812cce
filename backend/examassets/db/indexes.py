from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pymongo import ASCENDING, DESCENDING, IndexModel

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)

UPLOAD_BATCHES_COLLECTION = "upload_batches"


async def create_indexes(
    db: AsyncIOMotorDatabase,  # type: ignore[type-arg]
    registry_collection: str = "image_index",
) -> None:
    """Create all MongoDB indexes required by the asset service.

    Idempotent: ``create_indexes`` is a no-op when the index already exists.
    The unique fingerprint index is what lets ``create_only`` registry writes
    detect a racing writer.
    """
    logger.info("Creating MongoDB indexes")

    # ---- fingerprint registry ----
    await db[registry_collection].create_indexes(
        [
            IndexModel([("fingerprint", ASCENDING)], unique=True, name="uq_fingerprint"),
            IndexModel([("created_at", DESCENDING)], name="idx_registry_created"),
        ]
    )

    # ---- upload_batches ----
    await db[UPLOAD_BATCHES_COLLECTION].create_indexes(
        [
            IndexModel([("batch_id", ASCENDING)], unique=True, name="uq_batch_id"),
            IndexModel([("status", ASCENDING)], name="idx_batch_status"),
            IndexModel([("created_at", DESCENDING)], name="idx_batch_created"),
        ]
    )

    logger.info("MongoDB indexes created successfully")
