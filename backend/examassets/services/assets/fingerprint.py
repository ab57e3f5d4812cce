"""
Content fingerprinting for upload deduplication.

A fingerprint is the SHA-256 digest of an asset's exact bytes. Identical
bytes always produce the same fingerprint, so it is used as the registry
key that lets each unique image be stored once.
"""

from __future__ import annotations

import asyncio
import hashlib
import mimetypes
import re
from pathlib import Path

from examassets.models.assets import Asset

FINGERPRINT_LENGTH = 64

_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{64}$")


def compute_fingerprint(content: bytes) -> str:
    """Compute the SHA-256 fingerprint of the given content.

    Args:
        content: Raw bytes to hash.

    Returns:
        Lowercase 64-character hex string of the SHA-256 digest.
    """
    return hashlib.sha256(content).hexdigest()


def is_fingerprint(value: str) -> bool:
    """Return True if ``value`` looks like a fingerprint produced here."""
    return bool(_FINGERPRINT_RE.match(value))


async def read_asset(path: str | Path, content_type: str | None = None) -> Asset:
    """Load a file from disk into an ``Asset`` without blocking the loop.

    ``OSError`` from the read propagates unchanged.
    """
    path = Path(path)
    content = await asyncio.to_thread(path.read_bytes)
    guessed, _ = mimetypes.guess_type(path.name)
    return Asset(
        filename=path.name,
        content=content,
        content_type=content_type or guessed or "application/octet-stream",
    )
