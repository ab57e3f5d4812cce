"""
Best-effort lossy recompression of question images.

Images are shrunk to a maximum long edge and re-encoded until they fit a
target byte size. Anything that cannot be decoded raises
``CompressionError``; callers treat that as "upload the original".
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath

from PIL import Image, ImageOps, UnidentifiedImageError

from examassets.core.exceptions import CompressionError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS: frozenset[str] = frozenset({".jpg", ".jpeg", ".png", ".webp", ".gif"})

DEFAULT_MAX_SIZE_BYTES = 200 * 1024
DEFAULT_MAX_DIMENSION = 1200

_QUALITY_STEPS = (85, 75, 65, 55, 45)
_MIN_DIMENSION = 320
_SHRINK_FACTOR = 0.8

_resample_attr = getattr(Image, "Resampling", Image)
_LANCZOS = _resample_attr.LANCZOS


@dataclass(frozen=True)
class CompressedImage:
    data: bytes
    content_type: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def is_image(filename: str, content_type: str | None = None) -> bool:
    """True for ``image/*`` MIME types or common image extensions."""
    if content_type and content_type.lower().startswith("image/"):
        return True
    return PurePosixPath(filename.lower()).suffix in IMAGE_EXTENSIONS


def compress_image(
    data: bytes,
    content_type: str = "application/octet-stream",
    *,
    max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
) -> CompressedImage:
    """Recompress ``data`` to fit ``max_size_bytes`` and ``max_dimension``.

    Returns the input unchanged when it already fits both limits, when it
    is a GIF (re-encoding would drop animation), or when no attempt comes
    out smaller than the original.

    Raises:
        CompressionError: the bytes are not a decodable image.
    """
    original = CompressedImage(data=data, content_type=content_type)
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format == "GIF":
                return original
            if len(data) <= max_size_bytes and max(img.size) <= max_dimension:
                return original

            img.load()
            working = ImageOps.exif_transpose(img)
            best = _shrink_to_fit(working, max_size_bytes, max_dimension)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise CompressionError(f"Cannot recompress image: {exc}") from exc

    if best.size_bytes >= len(data):
        logger.debug("Recompression did not reduce size (%d bytes); keeping original", len(data))
        return original
    return best


def _shrink_to_fit(img: Image.Image, max_size_bytes: int, max_dimension: int) -> CompressedImage:
    has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)
    if has_alpha:
        img = img.convert("RGBA")
        fmt, content_type = "WEBP", "image/webp"
    else:
        img = img.convert("RGB")
        fmt, content_type = "JPEG", "image/jpeg"

    dimension = min(max(img.size), max_dimension)
    best: CompressedImage | None = None

    while True:
        resized = img.copy()
        resized.thumbnail((dimension, dimension), _LANCZOS)
        for quality in _QUALITY_STEPS:
            buf = io.BytesIO()
            resized.save(buf, format=fmt, quality=quality, optimize=True)
            candidate = CompressedImage(data=buf.getvalue(), content_type=content_type)
            if best is None or candidate.size_bytes < best.size_bytes:
                best = candidate
            if candidate.size_bytes <= max_size_bytes:
                return candidate

        next_dimension = int(dimension * _SHRINK_FACTOR)
        if next_dimension < _MIN_DIMENSION:
            return best
        dimension = next_dimension
