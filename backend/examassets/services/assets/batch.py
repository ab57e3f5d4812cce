"""
Batch upload coordination.

Runs the deduplicating uploader over many assets with a bounded number of
simultaneous uploads, records a per-item outcome, and lets a caller re-run
only the items that failed. Items may carry their bytes or a loader that is
called inside the window, so a large import holds at most ``concurrency``
buffers at once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from pymongo.errors import PyMongoError

from examassets.core.exceptions import ServiceUnavailableException, ValidationException
from examassets.models.assets import Asset, BatchItem, BatchItemResult, BatchReport, UploadStatus
from examassets.models.base import utc_now

if TYPE_CHECKING:
    from collections.abc import Sequence

    from motor.motor_asyncio import AsyncIOMotorCollection

    from examassets.services.assets.deduplicator import AssetDeduplicator

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5


@dataclass(frozen=True)
class DeferredItem:
    """A batch item whose bytes are loaded only when its upload starts.

    ``OSError`` from ``load`` is recorded as a ``READ_ERROR`` on the item.
    """

    item_id: str
    filename: str
    load: Callable[[], Awaitable[Asset]]


AnyItem = Union[BatchItem, DeferredItem]


class BatchUploadCoordinator:
    """Uploads a batch of assets through one deduplicator.

    At most ``concurrency`` uploads are awaited at once. One item's failure
    is recorded on that item and never aborts its siblings.
    """

    def __init__(self, deduplicator: AssetDeduplicator, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.deduplicator = deduplicator
        self.concurrency = concurrency

    async def run(self, items: Sequence[AnyItem], folder: str = "questions") -> BatchReport:
        """Upload every item and return the report, in input order."""
        _check_unique_ids(items)

        report = BatchReport(folder=folder, started_at=utc_now())
        logger.info(
            "Starting batch %s with %d items",
            report.batch_id,
            len(items),
            extra={"batch_id": report.batch_id, "folder": folder},
        )

        report.items = await self._upload_all(items, folder)
        report.completed_at = report.touch()
        report.recount()

        logger.info(
            "Batch %s %s: %d uploaded, %d reused, %d failed",
            report.batch_id,
            report.status.value,
            report.uploaded,
            report.reused,
            report.failed,
            extra={"batch_id": report.batch_id},
        )
        return report

    async def retry_failed(self, report: BatchReport, items: Sequence[AnyItem]) -> BatchReport:
        """Re-run only the items that failed in ``report``.

        ``items`` may contain the whole original batch or just the failed
        items; anything that did not fail is ignored. Returns a new report
        with the same ``batch_id`` and merged results.
        """
        failed_ids = set(report.failed_item_ids())
        retry_items = [item for item in items if item.item_id in failed_ids]
        if not retry_items:
            return report.model_copy(deep=True)

        logger.info(
            "Retrying %d failed items of batch %s",
            len(retry_items),
            report.batch_id,
            extra={"batch_id": report.batch_id},
        )
        retried = {result.item_id: result for result in await self._upload_all(retry_items, report.folder)}

        updated = report.model_copy(deep=True)
        updated.items = [retried.get(item.item_id, item) for item in updated.items]
        updated.completed_at = updated.touch()
        updated.recount()
        return updated

    async def _upload_all(self, items: Sequence[AnyItem], folder: str) -> list[BatchItemResult]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _one(item: AnyItem) -> BatchItemResult:
            async with semaphore:
                if isinstance(item, DeferredItem):
                    try:
                        asset = await item.load()
                    except OSError as exc:
                        logger.warning("Cannot read '%s': %s", item.filename, exc, extra={"item_id": item.item_id})
                        return BatchItemResult(
                            item_id=item.item_id,
                            filename=item.filename,
                            status=UploadStatus.FAILED,
                            error_code="READ_ERROR",
                            error=str(exc),
                        )
                else:
                    asset = item.asset
                outcome = await self.deduplicator.try_upload(asset, folder)
            return BatchItemResult(item_id=item.item_id, **outcome.model_dump())

        return list(await asyncio.gather(*(_one(item) for item in items)))


def _check_unique_ids(items: Sequence[AnyItem]) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for item in items:
        if item.item_id in seen:
            duplicates.append(item.item_id)
        seen.add(item.item_id)
    if duplicates:
        raise ValidationException(
            "Batch item ids must be unique",
            errors=[{"item_id": item_id, "error": "duplicate"} for item_id in duplicates],
        )


class BatchRepository:
    """Persists batch reports in the ``upload_batches`` collection."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:  # type: ignore[type-arg]
        self._collection = collection

    async def save(self, report: BatchReport) -> None:
        doc: dict[str, Any] = report.model_dump(mode="python")
        doc["status"] = report.status.value
        for item in doc["items"]:
            item["status"] = item["status"].value
        try:
            await self._collection.replace_one({"batch_id": report.batch_id}, doc, upsert=True)
        except PyMongoError as exc:
            logger.exception("Failed to persist batch %s", report.batch_id)
            raise ServiceUnavailableException("Batch store", detail={"batch_id": report.batch_id}) from exc

    async def get(self, batch_id: str) -> BatchReport | None:
        doc = await self._collection.find_one({"batch_id": batch_id}, {"_id": 0})
        if doc is None:
            return None
        return BatchReport.model_validate(doc)
