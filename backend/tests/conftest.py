"""
Shared pytest fixtures for the exam asset service test suite.

Provides in-memory fakes for the fingerprint registry, object store and
batch repository, a deduplicator wired to them, image factories, and a
FastAPI test client with all external dependencies overridden.
"""

from __future__ import annotations

import asyncio
import io
import os
from collections.abc import Callable
from datetime import datetime
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from examassets.core.exceptions import ObjectStoreError, RegistryError
from examassets.models.assets import Asset, BatchReport
from examassets.models.base import utc_now
from examassets.services.assets.deduplicator import AssetDeduplicator
from examassets.services.assets.object_store import ObjectStore
from examassets.services.assets.registry import AssetRegistry


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeRegistry(AssetRegistry):
    """Dict-backed registry with merge semantics and failure injection."""

    def __init__(self) -> None:
        self.entries: dict[str, dict] = {}
        self.get_calls = 0
        self.set_calls = 0
        self.fail_get = False
        self.fail_set = False

    async def get(self, fingerprint: str) -> str | None:
        self.get_calls += 1
        await asyncio.sleep(0)
        if self.fail_get:
            raise RegistryError("registry offline")
        entry = self.entries.get(fingerprint)
        return entry["url"] if entry else None

    async def set(self, fingerprint: str, url: str, created_at: datetime | None = None) -> str:
        self.set_calls += 1
        await asyncio.sleep(0)
        if self.fail_set:
            raise RegistryError("registry write refused")
        existing = self.entries.get(fingerprint)
        self.entries[fingerprint] = {
            "url": url,
            "created_at": existing["created_at"] if existing else (created_at or utc_now()),
        }
        return url


class FakeObjectStore(ObjectStore):
    """Records every put; can delay puts and fail selected payloads."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.puts: list[tuple[str, bytes, str]] = []
        self.fail_when: Callable[[str, bytes], bool] | None = None
        self.active = 0
        self.max_active = 0

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if self.fail_when is not None and self.fail_when(key, data):
                raise ObjectStoreError(f"simulated failure for {key}")
            self.puts.append((key, data, content_type))
            return f"https://cdn.test/{key}"
        finally:
            self.active -= 1


class FakeBatchRepository:
    """In-memory stand-in for ``BatchRepository``."""

    def __init__(self) -> None:
        self.reports: dict[str, BatchReport] = {}

    async def save(self, report: BatchReport) -> None:
        self.reports[report.batch_id] = report.model_copy(deep=True)

    async def get(self, batch_id: str) -> BatchReport | None:
        return self.reports.get(batch_id)


@pytest.fixture
def fake_registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore(delay=0.01)


@pytest.fixture
def deduplicator(fake_registry: FakeRegistry, fake_store: FakeObjectStore) -> AssetDeduplicator:
    return AssetDeduplicator(fake_registry, fake_store)


# ---------------------------------------------------------------------------
# Asset factories
# ---------------------------------------------------------------------------


def make_jpeg(width: int = 1600, height: int = 1200, quality: int = 95) -> bytes:
    """Return a JPEG of random noise; noise keeps the encoded size large."""
    img = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def make_png(width: int = 64, height: int = 64, color=(200, 30, 30, 255)) -> bytes:
    img = Image.new("RGBA", (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def make_asset() -> Callable[..., Asset]:
    def _make(content: bytes, filename: str = "blob.bin", content_type: str = "application/octet-stream") -> Asset:
        return Asset(filename=filename, content=content, content_type=content_type)

    return _make


@pytest.fixture
def png_bytes() -> Callable[..., bytes]:
    """Factory for small solid-colour PNGs; distinct colours give distinct bytes."""
    return make_png


@pytest.fixture(scope="session")
def large_jpeg() -> bytes:
    """A noisy JPEG of at least 500 KB."""
    data = make_jpeg()
    assert len(data) >= 500 * 1024
    return data


# ---------------------------------------------------------------------------
# FastAPI test app and async client
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_batches() -> FakeBatchRepository:
    return FakeBatchRepository()


@pytest.fixture
def mock_db() -> MagicMock:
    db = MagicMock()
    db.command = AsyncMock(return_value={"ok": 1.0})
    return db


@pytest.fixture
async def test_app(deduplicator: AssetDeduplicator, fake_batches: FakeBatchRepository, mock_db: MagicMock):
    """Create a FastAPI test application with overridden dependencies.

    Replaces MongoDB, Redis, the deduplicator and the batch repository so
    tests do not require external services.
    """
    from fastapi import FastAPI
    from fastapi.responses import ORJSONResponse

    from examassets.api.errors import install_exception_handlers
    from examassets.api.v1.router import api_v1_router
    from examassets.connections import get_database, get_redis
    from examassets.services.assets.factory import get_batch_repository, get_deduplicator

    app = FastAPI(
        title="Exam Asset Service Test API",
        default_response_class=ORJSONResponse,
    )
    install_exception_handlers(app)

    async def _override_get_database():
        yield mock_db

    mock_redis = AsyncMock()
    mock_redis.ping = AsyncMock(return_value=True)

    async def _override_get_redis():
        yield mock_redis

    app.dependency_overrides[get_database] = _override_get_database
    app.dependency_overrides[get_redis] = _override_get_redis
    app.dependency_overrides[get_deduplicator] = lambda: deduplicator
    app.dependency_overrides[get_batch_repository] = lambda: fake_batches

    app.include_router(api_v1_router, prefix="/api/v1")

    yield app


@pytest.fixture
async def async_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx.AsyncClient wired to the test FastAPI app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
