#!/usr/bin/env python3
"""
Bulk-import a directory of images through the deduplicating uploader.

Uses the same configuration (.env / environment) as the API. Every image
under the directory is fingerprinted, uploaded at most once, and recorded
in the registry; a JSON batch report is printed at the end. Files that
cannot be read are reported as failed without stopping the import.

Usage:
    python scripts/import_assets.py ./question-images
    python scripts/import_assets.py ./question-images --folder exams/2026 --concurrency 8
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from functools import partial
from pathlib import Path

from examassets.config import get_settings
from examassets.connections import close_connections, get_database_sync, get_redis_sync, open_connections
from examassets.core.logging import setup_logging
from examassets.db.indexes import UPLOAD_BATCHES_COLLECTION, create_indexes
from examassets.services.assets.batch import BatchRepository, BatchUploadCoordinator, DeferredItem
from examassets.services.assets.compression import is_image
from examassets.services.assets.factory import init_deduplicator
from examassets.services.assets.fingerprint import read_asset

logger = logging.getLogger("import_assets")


def _deferred_items(paths: list[Path], root: Path) -> list[DeferredItem]:
    """One lazily read item per file; bytes are read inside the upload window."""
    return [
        DeferredItem(item_id=path.relative_to(root).as_posix(), filename=path.name, load=partial(read_asset, path))
        for path in paths
    ]


async def run_import(directory: Path, folder: str, concurrency: int, use_cache: bool) -> int:
    settings = get_settings()
    setup_logging(level=settings.LOG_LEVEL, service="exam-assets-import")

    paths = sorted(p for p in directory.rglob("*") if p.is_file() and is_image(p.name))
    if not paths:
        logger.warning("No images found under %s", directory)
        return 0

    try:
        await open_connections(settings, with_redis=use_cache)
        db = get_database_sync()
        redis = get_redis_sync() if use_cache else None
        await create_indexes(db, registry_collection=settings.REGISTRY_COLLECTION)
        deduplicator = init_deduplicator(db, redis, settings)
        coordinator = BatchUploadCoordinator(deduplicator, concurrency=concurrency)

        report = await coordinator.run(_deferred_items(paths, directory), folder)

        await BatchRepository(db[UPLOAD_BATCHES_COLLECTION]).save(report)
    finally:
        await close_connections()

    print(report.model_dump_json(indent=2))
    return 1 if report.failed else 0


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Upload every image in a directory through the deduplicating uploader."
    )
    parser.add_argument("directory", type=Path, help="Directory to scan recursively for images.")
    parser.add_argument(
        "--folder",
        default=settings.DEFAULT_UPLOAD_FOLDER,
        help=f"Object store folder (default: {settings.DEFAULT_UPLOAD_FOLDER})",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.BATCH_CONCURRENCY,
        help=f"Simultaneous uploads (default: {settings.BATCH_CONCURRENCY})",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not use the Redis registry cache.",
    )
    args = parser.parse_args()

    if not args.directory.is_dir():
        print(f"Not a directory: {args.directory}", file=sys.stderr)
        sys.exit(2)

    sys.exit(asyncio.run(run_import(args.directory, args.folder, args.concurrency, not args.no_cache)))


if __name__ == "__main__":
    main()
