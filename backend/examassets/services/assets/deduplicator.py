"""
Deduplicating asset uploader.

Guarantees that identical bytes are uploaded at most once:

- across processes, through the shared fingerprint registry;
- within this process, through an in-flight map from fingerprint to the
  task performing the upload. The map check and the insert happen with no
  ``await`` in between, so every concurrent caller for the same content
  after the first one joins the first caller's task instead of starting
  its own.

An in-flight entry lives exactly as long as its upload task. It is removed
when the task finishes, successfully or not, so a failed fingerprint can
be retried and later callers are served by the registry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from examassets.core.exceptions import AppException, CompressionError
from examassets.models.assets import Asset, UploadOutcome, UploadStatus
from examassets.models.base import utc_now
from examassets.services.assets.compression import (
    DEFAULT_MAX_DIMENSION,
    DEFAULT_MAX_SIZE_BYTES,
    compress_image,
    is_image,
)
from examassets.services.assets.fingerprint import compute_fingerprint
from examassets.services.assets.object_store import build_object_key

if TYPE_CHECKING:
    from examassets.services.assets.object_store import ObjectStore
    from examassets.services.assets.registry import AssetRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Resolution:
    url: str
    stored_bytes: int
    written: bool


class AssetDeduplicator:
    """Uploads assets through the registry, the object store, and an in-flight guard."""

    def __init__(
        self,
        registry: AssetRegistry,
        store: ObjectStore,
        *,
        compression_enabled: bool = True,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        max_dimension: int = DEFAULT_MAX_DIMENSION,
    ) -> None:
        self.registry = registry
        self.store = store
        self.compression_enabled = compression_enabled
        self.max_size_bytes = max_size_bytes
        self.max_dimension = max_dimension
        self._in_flight: dict[str, asyncio.Task[_Resolution]] = {}

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def upload(self, asset: Asset, folder: str = "questions") -> str:
        """Return a URL for ``asset``, uploading it only if its content is new.

        Raises:
            ObjectStoreError: the bytes could not be stored.
            RegistryError: the registry could not be read or written.
        """
        outcome = await self._upload(asset, folder)
        return outcome.url  # type: ignore[return-value]

    async def try_upload(self, asset: Asset, folder: str = "questions") -> UploadOutcome:
        """Like ``upload`` but reports failures in the returned outcome.

        Only cancellation of the caller propagates.
        """
        try:
            return await self._upload(asset, folder)
        except AppException as exc:
            error_code, message = exc.error_code, exc.message
        except Exception as exc:
            logger.exception("Unexpected error uploading '%s'", asset.filename)
            error_code, message = "UPLOAD_FAILED", str(exc) or type(exc).__name__

        return UploadOutcome(
            filename=asset.filename,
            fingerprint=compute_fingerprint(asset.content),
            status=UploadStatus.FAILED,
            error_code=error_code,
            error=message,
            size_bytes=asset.size_bytes,
        )

    async def _upload(self, asset: Asset, folder: str) -> UploadOutcome:
        fingerprint = compute_fingerprint(asset.content)

        task = self._in_flight.get(fingerprint)
        owner = task is None
        if task is None:
            task = asyncio.ensure_future(self._resolve(fingerprint, asset, folder))
            self._in_flight[fingerprint] = task
            task.add_done_callback(lambda t, fp=fingerprint: self._release(fp, t))
        else:
            logger.debug("Joining in-flight upload for %s", fingerprint[:16])

        # Callers that give up waiting must not cancel the shared upload.
        resolution = await asyncio.shield(task)

        uploaded_here = owner and resolution.written
        return UploadOutcome(
            filename=asset.filename,
            fingerprint=fingerprint,
            status=UploadStatus.UPLOADED if uploaded_here else UploadStatus.REUSED,
            url=resolution.url,
            size_bytes=asset.size_bytes,
            stored_bytes=resolution.stored_bytes if uploaded_here else 0,
        )

    def _release(self, fingerprint: str, task: asyncio.Task[_Resolution]) -> None:
        if self._in_flight.get(fingerprint) is task:
            del self._in_flight[fingerprint]
        if not task.cancelled() and task.exception() is not None:
            logger.warning(
                "Upload failed for %s: %s",
                fingerprint[:16],
                task.exception(),
                extra={"fingerprint": fingerprint},
            )

    async def _resolve(self, fingerprint: str, asset: Asset, folder: str) -> _Resolution:
        existing = await self.registry.get(fingerprint)
        if existing is not None:
            logger.info(
                "Registry hit for %s",
                fingerprint[:16],
                extra={"fingerprint": fingerprint, "url": existing},
            )
            return _Resolution(url=existing, stored_bytes=0, written=False)

        data, content_type = await self._prepare(asset)

        key = build_object_key(folder, asset.filename, content_type)
        url = await self.store.put(key, data, content_type)
        url = await self.registry.set(fingerprint, url, utc_now())

        logger.info(
            "Uploaded new asset %s (%d -> %d bytes)",
            asset.filename,
            asset.size_bytes,
            len(data),
            extra={"fingerprint": fingerprint, "url": url, "key": key},
        )
        return _Resolution(url=url, stored_bytes=len(data), written=True)

    async def _prepare(self, asset: Asset) -> tuple[bytes, str]:
        """Compress non-empty image assets; fall back to the original bytes on failure."""
        if not (self.compression_enabled and asset.content and is_image(asset.filename, asset.content_type)):
            return asset.content, asset.content_type

        try:
            compressed = await asyncio.to_thread(
                compress_image,
                asset.content,
                asset.content_type,
                max_size_bytes=self.max_size_bytes,
                max_dimension=self.max_dimension,
            )
        except CompressionError as exc:
            logger.warning("Compression failed for '%s', uploading original: %s", asset.filename, exc)
            return asset.content, asset.content_type
        except Exception:
            logger.warning(
                "Unexpected compression error for '%s', uploading original",
                asset.filename,
                exc_info=True,
            )
            return asset.content, asset.content_type

        if compressed.size_bytes < asset.size_bytes:
            logger.debug(
                "Compressed '%s' from %d to %d bytes",
                asset.filename,
                asset.size_bytes,
                compressed.size_bytes,
            )
        return compressed.data, compressed.content_type
