"""
Asset upload endpoints.

Single and batch image uploads through the deduplicating uploader, batch
report lookup and retry of failed items, and fingerprint registry lookup.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field

from examassets.api.v1.uploads import normalize_folder, read_uploads
from examassets.core.exceptions import AppException, NotFoundException, ValidationException
from examassets.models.assets import BatchItem, BatchReport, UploadStatus
from examassets.services.assets.batch import BatchRepository, BatchUploadCoordinator
from examassets.services.assets.deduplicator import AssetDeduplicator
from examassets.services.assets.factory import (
    get_batch_coordinator,
    get_batch_repository,
    get_deduplicator,
)
from examassets.services.assets.fingerprint import is_fingerprint

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assets", tags=["assets"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class AssetUploadResponse(BaseModel):
    """Response after a single asset upload."""

    url: str = Field(..., description="Retrievable URL of the asset.")
    fingerprint: str = Field(..., description="SHA-256 hex digest of the uploaded bytes.")
    status: UploadStatus = Field(..., description="'uploaded' or 'reused'.")
    size_bytes: int = Field(..., description="Size of the uploaded file.")
    stored_bytes: int = Field(..., description="Bytes written to storage (0 when reused).")


class RegistryLookupResponse(BaseModel):
    """A fingerprint registry entry."""

    fingerprint: str
    url: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/upload",
    response_model=AssetUploadResponse,
    status_code=201,
    summary="Upload one asset",
    description="Stores the file unless identical content was stored before, "
    "and returns its URL either way.",
)
async def upload_asset(
    file: UploadFile = File(..., description="Image to upload."),
    folder: str | None = Form(default=None, description="Storage folder."),
    deduplicator: AssetDeduplicator = Depends(get_deduplicator),
) -> AssetUploadResponse:
    (asset,) = await read_uploads([file])
    outcome = await deduplicator.try_upload(asset, normalize_folder(folder))

    if not outcome.ok:
        logger.warning(
            "Upload of '%s' failed: %s",
            asset.filename,
            outcome.error,
            extra={"error_code": outcome.error_code, "fingerprint": outcome.fingerprint},
        )
        raise AppException(
            message=outcome.error or "Upload failed",
            status_code=422 if outcome.error_code == "VALIDATION_ERROR" else 503,
            error_code=outcome.error_code or "UPLOAD_FAILED",
            detail={"filename": asset.filename, "fingerprint": outcome.fingerprint},
        )

    return AssetUploadResponse(
        url=outcome.url or "",
        fingerprint=outcome.fingerprint,
        status=outcome.status,
        size_bytes=outcome.size_bytes,
        stored_bytes=outcome.stored_bytes,
    )


@router.post(
    "/batch",
    response_model=BatchReport,
    summary="Upload a batch of assets",
    description="Uploads every file with bounded concurrency. Per-file failures "
    "are reported in the body; resubmit only the failed files to /batches/{batch_id}/retry.",
)
async def upload_batch(
    files: list[UploadFile] = File(..., description="Images to upload."),
    folder: str | None = Form(default=None, description="Storage folder."),
    coordinator: BatchUploadCoordinator = Depends(get_batch_coordinator),
    repository: BatchRepository = Depends(get_batch_repository),
) -> BatchReport:
    assets = await read_uploads(files)
    items = [BatchItem(item_id=f"{index}:{asset.filename}", asset=asset) for index, asset in enumerate(assets)]

    report = await coordinator.run(items, normalize_folder(folder))
    await repository.save(report)
    return report


@router.get(
    "/batches/{batch_id}",
    response_model=BatchReport,
    summary="Get a batch report",
)
async def get_batch(
    batch_id: str,
    repository: BatchRepository = Depends(get_batch_repository),
) -> BatchReport:
    report = await repository.get(batch_id)
    if report is None:
        raise NotFoundException("Upload batch", batch_id)
    return report


@router.post(
    "/batches/{batch_id}/retry",
    response_model=BatchReport,
    summary="Retry the failed items of a batch",
    description="Resubmit the files that failed in a stored batch. Each file is "
    "matched by name to a failed item; items that already succeeded are kept "
    "as they are. Returns the updated report under the same batch id.",
)
async def retry_batch(
    batch_id: str,
    files: list[UploadFile] = File(..., description="Files of the failed items."),
    coordinator: BatchUploadCoordinator = Depends(get_batch_coordinator),
    repository: BatchRepository = Depends(get_batch_repository),
) -> BatchReport:
    report = await repository.get(batch_id)
    if report is None:
        raise NotFoundException("Upload batch", batch_id)

    assets = await read_uploads(files)

    failed_ids_by_name: dict[str, list[str]] = {}
    for item in report.items:
        if item.status == UploadStatus.FAILED:
            failed_ids_by_name.setdefault(item.filename, []).append(item.item_id)

    items: list[BatchItem] = []
    unmatched: list[str] = []
    for asset in assets:
        candidates = failed_ids_by_name.get(asset.filename)
        if not candidates:
            unmatched.append(asset.filename)
            continue
        items.append(BatchItem(item_id=candidates.pop(0), asset=asset))

    if unmatched:
        raise ValidationException(
            "Files do not match any failed item of this batch",
            errors=[{"filename": name, "error": "no failed item"} for name in unmatched],
            detail={"batch_id": batch_id},
        )

    updated = await coordinator.retry_failed(report, items)
    await repository.save(updated)
    return updated


@router.get(
    "/registry/{fingerprint}",
    response_model=RegistryLookupResponse,
    summary="Look up a content fingerprint",
)
async def lookup_fingerprint(
    fingerprint: str,
    deduplicator: AssetDeduplicator = Depends(get_deduplicator),
) -> RegistryLookupResponse:
    fingerprint = fingerprint.lower()
    if not is_fingerprint(fingerprint):
        raise ValidationException("Fingerprint must be a 64-character SHA-256 hex digest")

    url = await deduplicator.registry.get(fingerprint)
    if url is None:
        raise NotFoundException("Asset", fingerprint)
    return RegistryLookupResponse(fingerprint=fingerprint, url=url)
