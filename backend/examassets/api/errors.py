"""
Exception handlers rendering application errors as JSON payloads.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

from examassets.core.exceptions import AppException

logger = logging.getLogger(__name__)


def install_exception_handlers(application: FastAPI) -> None:
    """Map ``AppException`` to its payload and anything else to a generic 500."""

    @application.exception_handler(AppException)
    async def app_exception_handler(_request: Request, exc: AppException) -> ORJSONResponse:
        logger.warning(
            "Application error: %s",
            exc.message,
            extra={"error_code": exc.error_code, "status_code": exc.status_code},
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        _request: Request, exc: Exception
    ) -> ORJSONResponse:
        logger.exception("Unhandled exception: %s", str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
