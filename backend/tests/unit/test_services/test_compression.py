"""
Unit tests for image recompression.

Images are generated with Pillow so that sizes and dimensions are known.
"""

from __future__ import annotations

import io
import os

import pytest
from PIL import Image

from examassets.core.exceptions import CompressionError
from examassets.services.assets.compression import (
    DEFAULT_MAX_DIMENSION,
    DEFAULT_MAX_SIZE_BYTES,
    compress_image,
    is_image,
)


def _noise_rgba_png(width: int, height: int) -> bytes:
    img = Image.frombytes("RGBA", (width, height), os.urandom(width * height * 4))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _solid_gif(width: int, height: int) -> bytes:
    img = Image.new("P", (width, height), 3)
    buf = io.BytesIO()
    img.save(buf, format="GIF")
    return buf.getvalue()


class TestIsImage:
    @pytest.mark.parametrize(
        "filename, content_type",
        [
            ("q1.jpg", None),
            ("Q1.JPEG", None),
            ("diagram.png", "application/octet-stream"),
            ("option.webp", None),
            ("anim.gif", None),
            ("noext", "image/png"),
            ("upload.bin", "IMAGE/JPEG"),
        ],
    )
    def test_detects_images(self, filename, content_type):
        assert is_image(filename, content_type)

    @pytest.mark.parametrize(
        "filename, content_type",
        [
            ("notes.pdf", "application/pdf"),
            ("data.csv", None),
            ("noext", None),
        ],
    )
    def test_rejects_non_images(self, filename, content_type):
        assert not is_image(filename, content_type)


class TestCompressImage:
    """Lossy recompression to size and dimension limits."""

    def test_defaults(self):
        assert DEFAULT_MAX_SIZE_BYTES == 200 * 1024
        assert DEFAULT_MAX_DIMENSION == 1200

    def test_image_within_limits_returned_unchanged(self, png_bytes):
        data = png_bytes(100, 80)

        result = compress_image(data, "image/png")

        assert result.data == data
        assert result.content_type == "image/png"

    def test_large_jpeg_fits_limits(self, large_jpeg):
        result = compress_image(large_jpeg, "image/jpeg")

        assert result.content_type == "image/jpeg"
        assert result.size_bytes <= DEFAULT_MAX_SIZE_BYTES
        with Image.open(io.BytesIO(result.data)) as img:
            assert img.format == "JPEG"
            assert max(img.size) <= DEFAULT_MAX_DIMENSION

    def test_aspect_ratio_preserved(self, large_jpeg):
        result = compress_image(large_jpeg, "image/jpeg")

        with Image.open(io.BytesIO(result.data)) as img:
            width, height = img.size
        assert abs(width / height - 1600 / 1200) < 0.02

    def test_transparent_image_becomes_webp(self):
        data = _noise_rgba_png(1300, 900)

        result = compress_image(data, "image/png")

        assert result.content_type == "image/webp"
        assert result.size_bytes < len(data)
        with Image.open(io.BytesIO(result.data)) as img:
            assert img.format == "WEBP"
            assert max(img.size) <= DEFAULT_MAX_DIMENSION

    def test_custom_limits(self, large_jpeg):
        result = compress_image(large_jpeg, "image/jpeg", max_size_bytes=50 * 1024, max_dimension=600)

        with Image.open(io.BytesIO(result.data)) as img:
            assert max(img.size) <= 600

    def test_gif_left_alone(self):
        data = _solid_gif(1600, 1600)

        result = compress_image(data, "image/gif")

        assert result.data == data
        assert result.content_type == "image/gif"

    def test_undecodable_bytes_raise(self):
        with pytest.raises(CompressionError):
            compress_image(b"definitely not an image", "image/png")

    def test_truncated_image_raises(self, large_jpeg):
        with pytest.raises(CompressionError):
            compress_image(large_jpeg[: len(large_jpeg) // 2], "image/jpeg")
