"""
Unit tests for the application exception hierarchy.
"""

from __future__ import annotations

from examassets.core.exceptions import (
    AppException,
    NotFoundException,
    ObjectStoreError,
    RegistryError,
    ServiceUnavailableException,
    UploadError,
    ValidationException,
)


class TestExceptionPayloads:
    def test_defaults(self):
        exc = AppException()

        assert exc.status_code == 500
        assert exc.to_dict() == {"error": "INTERNAL_ERROR", "message": "An unexpected error occurred"}

    def test_overrides(self):
        exc = AppException("slow down", status_code=429, error_code="RATE_LIMITED", detail={"retry": 5})

        assert exc.status_code == 429
        assert exc.to_dict() == {"error": "RATE_LIMITED", "message": "slow down", "detail": {"retry": 5}}
        assert AppException().status_code == 500

    def test_not_found(self):
        exc = NotFoundException("Upload batch", "b-1")

        assert exc.status_code == 404
        assert exc.message == "Upload batch 'b-1' not found"
        assert NotFoundException("Asset").message == "Asset not found"

    def test_validation_errors_in_detail(self):
        exc = ValidationException("bad manifest", errors=[{"file": "a.png"}], detail={"batch": "x"})

        assert exc.status_code == 422
        assert exc.detail == {"batch": "x", "errors": [{"file": "a.png"}]}

    def test_service_unavailable(self):
        exc = ServiceUnavailableException("Batch store")

        assert exc.status_code == 503
        assert exc.message == "Batch store is currently unavailable"

    def test_upload_errors(self):
        store = ObjectStoreError("disk full", detail={"key": "q/a.png"})
        registry = RegistryError()

        assert isinstance(store, UploadError)
        assert store.status_code == registry.status_code == 503
        assert store.error_code == "OBJECT_STORE_ERROR"
        assert registry.error_code == "REGISTRY_ERROR"
        assert registry.message == "Asset registry access failed"
        assert str(store) == "disk full"
