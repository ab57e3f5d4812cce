from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles

from examassets.api.errors import install_exception_handlers
from examassets.api.v1.router import api_v1_router
from examassets.config import get_settings
from examassets.connections import (
    close_connections,
    get_database_sync,
    get_redis_sync,
    open_connections,
)
from examassets.core.logging import setup_logging
from examassets.db.indexes import create_indexes
from examassets.services.assets.factory import init_deduplicator, reset_deduplicator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of external connections."""
    settings = get_settings()
    setup_logging(level=settings.LOG_LEVEL)

    logger.info(
        "Starting exam asset service",
        extra={"environment": settings.ENVIRONMENT},
    )

    # --- Startup ---
    await open_connections(settings)

    db = get_database_sync()
    await create_indexes(db, registry_collection=settings.REGISTRY_COLLECTION)
    init_deduplicator(db, get_redis_sync(), settings)

    logger.info("Exam asset service ready")

    yield

    # --- Shutdown ---
    logger.info("Shutting down exam asset service")
    reset_deduplicator()
    await close_connections()
    logger.info("Exam asset service stopped")


def create_application() -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = get_settings()

    application = FastAPI(
        title="Exam Asset Service",
        description="Deduplicated image storage for the exam portal",
        version="0.1.0",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
    )

    # --- CORS ---
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    install_exception_handlers(application)

    # --- Routers ---
    application.include_router(api_v1_router, prefix="/api/v1")

    # --- Locally stored assets ---
    if settings.OBJECT_STORE_BACKEND == "local":
        media_root = Path(settings.LOCAL_STORAGE_PATH)
        media_root.mkdir(parents=True, exist_ok=True)
        application.mount("/media", StaticFiles(directory=media_root), name="media")

    return application


app = create_application()
