"""
Fingerprint registry: the shared store mapping content fingerprints to URLs.

The registry is shared by every process serving uploads, so it is the only
cross-process deduplication mechanism. Two write modes are supported:

- ``merge``: repeated writes are safe and the latest URL wins. Two processes
  that miss the registry at the same instant may both upload, leaving a
  duplicate object behind; the registry ends up pointing at one of them.
- ``create_only``: the first URL registered for a fingerprint is kept and
  later writers are handed that URL back, so every process converges on a
  single object (the loser's upload is orphaned).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from examassets.core.exceptions import RegistryError
from examassets.models.assets import RegistryEntry
from examassets.models.base import utc_now

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorCollection
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

WriteMode = Literal["merge", "create_only"]

_CACHE_PREFIX = "examassets:registry:"


class AssetRegistry(ABC):
    """Abstract fingerprint -> URL store."""

    @abstractmethod
    async def get(self, fingerprint: str) -> str | None:
        """Return the URL registered for ``fingerprint``, or None."""

    @abstractmethod
    async def set(
        self,
        fingerprint: str,
        url: str,
        created_at: datetime | None = None,
    ) -> str:
        """Register ``url`` for ``fingerprint``.

        Returns the URL the registry holds for the fingerprint after the
        write. Writing the same fingerprint again never raises.
        """

    async def ping(self) -> bool:
        return True


class MongoAssetRegistry(AssetRegistry):
    """Registry backed by a MongoDB collection with a unique fingerprint index."""

    def __init__(
        self,
        collection: AsyncIOMotorCollection,  # type: ignore[type-arg]
        write_mode: WriteMode = "merge",
    ) -> None:
        self._collection = collection
        self.write_mode = write_mode

    async def get(self, fingerprint: str) -> str | None:
        try:
            doc = await self._collection.find_one({"fingerprint": fingerprint}, {"_id": 0})
        except PyMongoError as exc:
            raise RegistryError(
                f"Registry lookup failed: {exc}",
                detail={"fingerprint": fingerprint},
            ) from exc
        if doc is None:
            return None
        try:
            return RegistryEntry.model_validate(doc).url
        except ValidationError as exc:
            raise RegistryError(
                "Malformed registry entry",
                detail={"fingerprint": fingerprint},
            ) from exc

    async def set(
        self,
        fingerprint: str,
        url: str,
        created_at: datetime | None = None,
    ) -> str:
        created_at = created_at or utc_now()
        entry = RegistryEntry(fingerprint=fingerprint, url=url, created_at=created_at)
        try:
            if self.write_mode == "create_only":
                return await self._create_only(entry)

            await self._collection.update_one(
                {"fingerprint": fingerprint},
                {
                    "$set": {"url": entry.url, "updated_at": entry.updated_at},
                    "$setOnInsert": {"created_at": entry.created_at},
                },
                upsert=True,
            )
        except PyMongoError as exc:
            raise RegistryError(
                f"Registry write failed: {exc}",
                detail={"fingerprint": fingerprint},
            ) from exc

        logger.debug("Registered %s -> %s", fingerprint[:16], url)
        return url

    async def _create_only(self, entry: RegistryEntry) -> str:
        fingerprint, url = entry.fingerprint, entry.url
        entry.updated_at = entry.created_at
        try:
            result = await self._collection.update_one(
                {"fingerprint": fingerprint},
                {"$setOnInsert": entry.model_dump(exclude={"fingerprint"})},
                upsert=True,
            )
        except DuplicateKeyError:
            # Another writer inserted between our filter match and insert.
            result = None

        if result is not None and result.upserted_id is not None:
            logger.debug("Registered %s -> %s", fingerprint[:16], url)
            return url

        existing = await self.get(fingerprint)
        if existing is None:
            raise RegistryError(
                "Registry entry vanished during create-only write",
                detail={"fingerprint": fingerprint},
            )
        if existing != url:
            logger.info(
                "Fingerprint %s already registered by another writer; keeping %s",
                fingerprint[:16],
                existing,
            )
        return existing

    async def ping(self) -> bool:
        try:
            await self._collection.database.command("ping")
        except PyMongoError:
            logger.warning("Registry ping failed", exc_info=True)
            return False
        return True


class CachedAssetRegistry(AssetRegistry):
    """Redis read-through cache in front of another registry.

    Cache failures are logged and ignored; the wrapped registry stays
    authoritative and its errors propagate.
    """

    def __init__(
        self,
        primary: AssetRegistry,
        redis: Redis,  # type: ignore[type-arg]
        ttl: int = 86_400,
    ) -> None:
        self.primary = primary
        self._redis = redis
        self._ttl = ttl

    @staticmethod
    def cache_key(fingerprint: str) -> str:
        return f"{_CACHE_PREFIX}{fingerprint}"

    async def get(self, fingerprint: str) -> str | None:
        cached = await self._cache_get(fingerprint)
        if cached is not None:
            logger.debug("Registry cache hit for %s", fingerprint[:16])
            return cached

        url = await self.primary.get(fingerprint)
        if url is not None:
            await self._cache_set(fingerprint, url)
        return url

    async def set(
        self,
        fingerprint: str,
        url: str,
        created_at: datetime | None = None,
    ) -> str:
        stored = await self.primary.set(fingerprint, url, created_at)
        await self._cache_set(fingerprint, stored)
        return stored

    async def ping(self) -> bool:
        return await self.primary.ping()

    async def _cache_get(self, fingerprint: str) -> str | None:
        try:
            return await self._redis.get(self.cache_key(fingerprint))
        except Exception as exc:
            logger.warning("Registry cache read error: %s", exc)
            return None

    async def _cache_set(self, fingerprint: str, url: str) -> None:
        try:
            await self._redis.set(self.cache_key(fingerprint), url, ex=self._ttl)
        except Exception as exc:
            logger.warning("Registry cache write error: %s", exc)
