"""
Asset upload models.

Covers the input value handed to the deduplicating uploader, the
fingerprint registry document, the per-asset result type returned at the
uploader boundary, and the batch report persisted after a bulk upload.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from examassets.models.base import MongoBaseModel, generate_uuid

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class UploadStatus(str, Enum):
    """
    Outcome of a single deduplicated upload.

    - uploaded: this call wrote the bytes to the object store.
    - reused: the URL came from the registry or from a concurrent upload
      of the same content.
    - failed: no URL could be produced.
    """

    UPLOADED = "uploaded"
    REUSED = "reused"
    FAILED = "failed"


class BatchStatus(str, Enum):
    """Overall status of a batch upload."""

    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class Asset(BaseModel):
    """A fully materialised binary asset, typically a question image."""

    filename: str = Field(..., description="Original filename.")
    content: bytes = Field(..., repr=False, description="Raw asset bytes.")
    content_type: str = Field(
        default="application/octet-stream",
        description="MIME type reported by the client.",
    )

    @property
    def size_bytes(self) -> int:
        return len(self.content)


class BatchItem(BaseModel):
    """One asset in a batch, keyed by a caller-chosen identifier."""

    item_id: str = Field(..., description="Identifier unique within the batch.")
    asset: Asset


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class RegistryEntry(MongoBaseModel):
    """
    Maps a content fingerprint to the URL of its stored object.

    One entry per unique asset content, system-wide.

    MongoDB collection: ``image_index``
    """

    fingerprint: str = Field(
        ...,
        min_length=64,
        max_length=64,
        description="SHA-256 hex digest of the asset bytes.",
    )
    url: str = Field(..., description="Retrievable URL of the stored object.")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class UploadOutcome(BaseModel):
    """Result of one deduplicated upload: a URL on success, a reason on failure."""

    filename: str = Field(..., description="Original filename.")
    fingerprint: str = Field(default="", description="SHA-256 hex digest of the asset bytes.")
    status: UploadStatus = Field(..., description="What happened to the asset.")
    url: str | None = Field(default=None, description="Retrievable URL, unless failed.")
    error_code: str | None = Field(default=None, description="Machine-readable failure code.")
    error: str | None = Field(default=None, description="Failure description.")
    size_bytes: int = Field(default=0, ge=0, description="Size of the original asset.")
    stored_bytes: int = Field(
        default=0,
        ge=0,
        description="Bytes written to the object store by this call (0 when reused).",
    )

    @property
    def ok(self) -> bool:
        return self.status != UploadStatus.FAILED


class BatchItemResult(UploadOutcome):
    """Upload outcome of one batch item."""

    item_id: str = Field(..., description="Identifier of the batch item.")


class BatchReport(MongoBaseModel):
    """
    Per-item report of a batch upload.

    Lets clients see which assets failed and resubmit only those.

    MongoDB collection: ``upload_batches``
    """

    batch_id: str = Field(
        default_factory=generate_uuid,
        description="Unique batch identifier (UUID v4).",
    )
    folder: str = Field(..., description="Object store folder the batch was uploaded to.")
    status: BatchStatus = Field(default=BatchStatus.COMPLETED)
    items: list[BatchItemResult] = Field(default_factory=list)
    total_items: int = Field(default=0, ge=0)
    uploaded: int = Field(default=0, ge=0, description="Items this batch wrote to storage.")
    reused: int = Field(default=0, ge=0, description="Items resolved to an existing object.")
    failed: int = Field(default=0, ge=0)
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)

    def failed_item_ids(self) -> list[str]:
        return [item.item_id for item in self.items if item.status == UploadStatus.FAILED]

    def url_for(self, item_id: str) -> str | None:
        for item in self.items:
            if item.item_id == item_id:
                return item.url
        return None

    def recount(self) -> None:
        """Recompute the counters and status from ``items``."""
        self.total_items = len(self.items)
        self.uploaded = sum(1 for i in self.items if i.status == UploadStatus.UPLOADED)
        self.reused = sum(1 for i in self.items if i.status == UploadStatus.REUSED)
        self.failed = sum(1 for i in self.items if i.status == UploadStatus.FAILED)
        if self.failed == 0:
            self.status = BatchStatus.COMPLETED
        elif self.failed == self.total_items:
            self.status = BatchStatus.FAILED
        else:
            self.status = BatchStatus.COMPLETED_WITH_ERRORS
