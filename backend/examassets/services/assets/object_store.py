"""
Object stores holding uploaded asset bytes.

Every store exposes ``put(key, data, content_type) -> url``. Keys are
generated by ``build_object_key`` so two uploads never overwrite each other,
even for the same filename.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import re
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Any
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError

from examassets.core.exceptions import ObjectStoreError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

# mimetypes maps image/jpeg to .jpe on some platforms
_PREFERRED_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def sanitize_segment(value: str) -> str:
    """Reduce a folder or filename segment to a safe object-key component."""
    cleaned = _UNSAFE_CHARS.sub("-", value.strip()).strip("-.")
    return cleaned or "asset"


def build_object_key(folder: str, filename: str, content_type: str | None = None) -> str:
    """Build a collision-resistant key: ``<folder>/<uuid>-<stem><ext>``.

    The extension follows ``content_type`` when it names a known image
    type, so a PNG recompressed to JPEG is stored as ``.jpg``.
    """
    segments = [sanitize_segment(part) for part in folder.split("/") if part.strip()]
    name = PurePosixPath(filename.replace("\\", "/")).name
    stem, suffix = PurePosixPath(name).stem, PurePosixPath(name).suffix.lower()

    ext = _PREFERRED_EXTENSIONS.get(content_type or "")
    if ext is None and content_type and not suffix:
        ext = mimetypes.guess_extension(content_type)
    ext = ext or suffix

    segments.append(f"{uuid4().hex}-{sanitize_segment(stem)}{ext}")
    return "/".join(segments)


class ObjectStore(ABC):
    """Abstract binary object store."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its retrievable URL."""

    async def ping(self) -> bool:
        return True


class LocalObjectStore(ObjectStore):
    """Stores objects on the local filesystem.

    The application serves ``base_path`` under ``public_base_url``.
    """

    def __init__(self, base_path: str | Path, public_base_url: str) -> None:
        self.base_path = Path(base_path)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if not path.is_relative_to(self.base_path.resolve()):
            raise ObjectStoreError(f"Object key escapes storage root: {key}")
        return path

    def _write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.part")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(self._write, key, data)
        except OSError as exc:
            raise ObjectStoreError(
                f"Failed to write object '{key}': {exc}",
                detail={"key": key},
            ) from exc
        logger.debug("Stored %d bytes at %s", len(data), key)
        return f"{self.public_base_url}/{key}"

    async def ping(self) -> bool:
        return await asyncio.to_thread(self.base_path.is_dir)


class S3ObjectStore(ObjectStore):
    """Stores objects in an S3-compatible bucket (AWS S3, Cloudflare R2, MinIO)."""

    def __init__(
        self,
        *,
        bucket: str,
        public_url: str,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        client: Any = None,
    ) -> None:
        self._bucket = bucket
        self.public_url = public_url.rstrip("/")
        self._endpoint_url = endpoint_url or None
        self._region_name = region_name or None
        self._access_key_id = access_key_id or None
        self._secret_access_key = secret_access_key or None
        self._client = client

    def _client_factory(self) -> Any:
        import boto3

        return boto3.client(
            "s3",
            endpoint_url=self._endpoint_url,
            region_name=self._region_name,
            aws_access_key_id=self._access_key_id,
            aws_secret_access_key=self._secret_access_key,
        )

    @property
    def _s3(self) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(
                f"Failed to upload object '{key}' to bucket '{self._bucket}': {exc}",
                detail={"key": key, "bucket": self._bucket},
            ) from exc
        logger.debug("Uploaded %d bytes to s3://%s/%s", len(data), self._bucket, key)
        return f"{self.public_url}/{key}"

    async def ping(self) -> bool:
        try:
            await asyncio.to_thread(self._s3.head_bucket, Bucket=self._bucket)
        except (BotoCoreError, ClientError):
            logger.warning("S3 bucket check failed", exc_info=True)
            return False
        return True
