"""
Application exception hierarchy.

Every ``AppException`` carries the HTTP status and machine-readable code it
is rendered with; subclasses only change those defaults and how the
message is built. ``CompressionError`` is internal and never reaches a
client.
"""

from __future__ import annotations


class AppException(Exception):
    """Base exception for all application-level errors.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code to return.
        error_code: Machine-readable error identifier.
        detail: Optional additional context.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        error_code: str | None = None,
        detail: dict[str, object] | None = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}

    def to_dict(self) -> dict[str, object]:
        """Serialise the exception to a JSON-friendly dict."""
        payload: dict[str, object] = {"error": self.error_code, "message": self.message}
        if self.detail:
            payload["detail"] = self.detail
        return payload


class NotFoundException(AppException):
    """A batch report, registry entry or other resource does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", identifier: str = "", detail: dict[str, object] | None = None) -> None:
        name = f"{resource} '{identifier}'" if identifier else resource
        super().__init__(f"{name} not found", detail=detail)


class ValidationException(AppException):
    """Request data or an asset was rejected before any upload."""

    status_code = 422
    error_code = "VALIDATION_ERROR"
    default_message = "Validation error"

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, object]] | None = None,
        detail: dict[str, object] | None = None,
    ) -> None:
        merged = dict(detail or {})
        if errors:
            merged["errors"] = errors
        super().__init__(message, detail=merged)


class ServiceUnavailableException(AppException):
    """A backing service could not be reached."""

    status_code = 503
    error_code = "SERVICE_UNAVAILABLE"

    def __init__(self, service: str = "External service", detail: dict[str, object] | None = None) -> None:
        super().__init__(f"{service} is currently unavailable", detail=detail)


class UploadError(AppException):
    """An upload could not complete; retrying the same asset may succeed."""

    status_code = 503
    error_code = "UPLOAD_FAILED"
    default_message = "Upload failed"

    def __init__(self, message: str | None = None, detail: dict[str, object] | None = None) -> None:
        super().__init__(message, detail=detail)


class ObjectStoreError(UploadError):
    """Asset bytes could not be written to the object store."""

    error_code = "OBJECT_STORE_ERROR"
    default_message = "Object store write failed"


class RegistryError(UploadError):
    """The fingerprint registry could not be read or written."""

    error_code = "REGISTRY_ERROR"
    default_message = "Asset registry access failed"


class CompressionError(Exception):
    """An image could not be decoded or re-encoded; the original is uploaded instead."""
