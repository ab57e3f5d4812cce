"""
Unit tests for multipart upload validation helpers.
"""

from __future__ import annotations

import io

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from examassets.api.v1.uploads import normalize_folder, read_uploads, validate_file_extension
from examassets.config import get_settings


def _upload(name: str | None, content: bytes, content_type: str = "image/png") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=name,
        headers=Headers({"content-type": content_type}),
    )


class TestValidateFileExtension:
    @pytest.mark.parametrize("name", ["a.png", "B.JPG", "c.jpeg", "d.webp", "e.gif", "f.svg", "g.bmp"])
    def test_allowed(self, name):
        assert validate_file_extension(name)

    @pytest.mark.parametrize("name", ["a.txt", "b.png.exe", "c", "d.pdf"])
    def test_rejected(self, name):
        assert not validate_file_extension(name)


class TestNormalizeFolder:
    def test_default(self):
        assert normalize_folder(None) == "questions"
        assert normalize_folder("  ") == "questions"

    def test_sanitised(self):
        assert normalize_folder("exams/2026 mock") == "exams/2026-mock"

    def test_parent_segments_dropped(self):
        assert normalize_folder("../../etc") == "etc"


class TestReadUploads:
    async def test_reads_assets(self):
        assets = await read_uploads([_upload("q1.png", b"one"), _upload("q2.jpg", b"two", "image/jpeg")])

        assert [a.filename for a in assets] == ["q1.png", "q2.jpg"]
        assert assets[1].content == b"two"
        assert assets[1].content_type == "image/jpeg"

    async def test_no_files(self):
        with pytest.raises(HTTPException) as exc_info:
            await read_uploads([])
        assert exc_info.value.status_code == 400

    async def test_bad_extension(self):
        with pytest.raises(HTTPException) as exc_info:
            await read_uploads([_upload("notes.txt", b"text")])
        assert exc_info.value.status_code == 422

    async def test_empty_file(self):
        with pytest.raises(HTTPException) as exc_info:
            await read_uploads([_upload("empty.png", b"")])
        assert exc_info.value.status_code == 422

    async def test_file_too_large(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "UPLOAD_MAX_FILE_SIZE_MB", 0)

        with pytest.raises(HTTPException) as exc_info:
            await read_uploads([_upload("big.png", b"x")])
        assert exc_info.value.status_code == 413
