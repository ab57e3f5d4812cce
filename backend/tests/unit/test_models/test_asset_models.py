"""
Unit tests for the asset upload models.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from examassets.models.assets import (
    Asset,
    BatchItemResult,
    BatchReport,
    BatchStatus,
    RegistryEntry,
    UploadOutcome,
    UploadStatus,
)


def _result(item_id: str, status: UploadStatus) -> BatchItemResult:
    return BatchItemResult(
        item_id=item_id,
        filename=f"{item_id}.png",
        status=status,
        url=None if status == UploadStatus.FAILED else f"https://cdn.test/{item_id}.png",
    )


class TestAsset:
    def test_size_and_default_type(self):
        asset = Asset(filename="a.bin", content=b"12345")

        assert asset.size_bytes == 5
        assert asset.content_type == "application/octet-stream"

    def test_repr_hides_content(self):
        asset = Asset(filename="a.bin", content=b"secret-bytes")
        assert "secret-bytes" not in repr(asset)


class TestUploadOutcome:
    def test_ok(self):
        assert UploadOutcome(filename="a", status=UploadStatus.REUSED, url="u").ok
        assert not UploadOutcome(filename="a", status=UploadStatus.FAILED).ok

    def test_status_serialises_as_value(self):
        data = UploadOutcome(filename="a", status=UploadStatus.UPLOADED, url="u").model_dump(mode="json")
        assert data["status"] == "uploaded"


class TestRegistryEntry:
    def test_valid(self):
        entry = RegistryEntry(fingerprint="f" * 64, url="https://cdn.test/x.png")
        assert entry.created_at is not None

    def test_fingerprint_length_enforced(self):
        with pytest.raises(ValidationError):
            RegistryEntry(fingerprint="abc", url="https://cdn.test/x.png")


class TestBatchReport:
    def test_recount_completed(self):
        report = BatchReport(
            folder="q",
            items=[_result("a", UploadStatus.UPLOADED), _result("b", UploadStatus.REUSED)],
        )
        report.recount()

        assert report.status == BatchStatus.COMPLETED
        assert (report.total_items, report.uploaded, report.reused, report.failed) == (2, 1, 1, 0)

    def test_recount_with_errors(self):
        report = BatchReport(
            folder="q",
            items=[_result("a", UploadStatus.UPLOADED), _result("b", UploadStatus.FAILED)],
        )
        report.recount()

        assert report.status == BatchStatus.COMPLETED_WITH_ERRORS
        assert report.failed_item_ids() == ["b"]

    def test_recount_all_failed(self):
        report = BatchReport(folder="q", items=[_result("a", UploadStatus.FAILED)])
        report.recount()

        assert report.status == BatchStatus.FAILED

    def test_url_for(self):
        report = BatchReport(folder="q", items=[_result("a", UploadStatus.UPLOADED)])

        assert report.url_for("a") == "https://cdn.test/a.png"
        assert report.url_for("missing") is None

    def test_batch_ids_unique(self):
        assert BatchReport(folder="q").batch_id != BatchReport(folder="q").batch_id

    def test_touch_updates_timestamp(self):
        report = BatchReport(folder="q")
        before = report.updated_at

        stamped = report.touch()

        assert report.updated_at == stamped
        assert stamped >= before
        assert stamped.tzinfo is not None
