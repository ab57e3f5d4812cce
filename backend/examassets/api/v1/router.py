"""
Main API v1 router.

Aggregates all endpoint sub-routers. The application entry point mounts
it under the /api/v1 prefix:

    from examassets.api.v1.router import api_v1_router
    app.include_router(api_v1_router, prefix="/api/v1")
"""

from __future__ import annotations

from fastapi import APIRouter

from examassets.api.v1.endpoints.assets import router as assets_router
from examassets.api.v1.endpoints.health import router as health_router
from examassets.api.v1.endpoints.questions import router as questions_router

api_v1_router = APIRouter()

# Health checks (no prefix -- mounted at /api/v1/health and /api/v1/ready)
api_v1_router.include_router(health_router)

# Asset uploads -- /api/v1/assets/*
api_v1_router.include_router(assets_router)

# Question media import -- /api/v1/questions/*
api_v1_router.include_router(questions_router)
