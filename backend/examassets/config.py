from __future__ import annotations

import threading
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- MongoDB ---
    MONGO_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI",
    )
    MONGO_DB_NAME: str = Field(
        default="exam_portal",
        description="MongoDB database name",
    )

    # --- Redis ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URI",
    )

    # --- Asset registry ---
    REGISTRY_COLLECTION: str = Field(
        default="image_index",
        description="MongoDB collection mapping content fingerprints to URLs",
    )
    REGISTRY_WRITE_MODE: Literal["merge", "create_only"] = Field(
        default="merge",
        description=(
            "'merge' overwrites the URL of an existing fingerprint (last writer wins); "
            "'create_only' keeps the first URL ever registered"
        ),
    )
    REGISTRY_CACHE_ENABLED: bool = Field(
        default=True,
        description="Cache registry lookups in Redis",
    )
    REGISTRY_CACHE_TTL_SECONDS: int = Field(
        default=86_400,
        description="TTL for cached registry entries",
    )

    # --- Object store ---
    OBJECT_STORE_BACKEND: Literal["local", "s3"] = Field(
        default="local",
        description="Where asset bytes are stored: 'local' filesystem or an S3-compatible bucket",
    )
    LOCAL_STORAGE_PATH: str = Field(
        default="./media",
        description="Base directory for the local object store",
    )
    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:8000/media",
        description="Public URL prefix under which locally stored assets are served",
    )
    S3_BUCKET: str = Field(
        default="",
        description="Bucket name for the S3 object store",
    )
    S3_ENDPOINT_URL: str = Field(
        default="",
        description="Custom endpoint for S3-compatible providers (R2, MinIO)",
    )
    S3_REGION: str = Field(
        default="auto",
        description="Region name passed to the S3 client",
    )
    S3_ACCESS_KEY_ID: str = Field(
        default="",
        description="Access key for the S3 object store",
    )
    S3_SECRET_ACCESS_KEY: str = Field(
        default="",
        description="Secret key for the S3 object store",
    )
    S3_PUBLIC_URL: str = Field(
        default="",
        description="Public URL prefix for objects in the bucket",
    )

    # --- Compression ---
    COMPRESSION_ENABLED: bool = Field(
        default=True,
        description="Recompress images before upload",
    )
    COMPRESSION_MAX_SIZE_KB: int = Field(
        default=200,
        description="Target maximum size of a compressed image in kilobytes",
    )
    COMPRESSION_MAX_DIMENSION: int = Field(
        default=1200,
        description="Maximum length of the long edge of a compressed image in pixels",
    )

    # --- Batch uploads ---
    BATCH_CONCURRENCY: int = Field(
        default=5,
        ge=1,
        description="Number of simultaneous uploads in a batch",
    )
    DEFAULT_UPLOAD_FOLDER: str = Field(
        default="questions",
        description="Folder used when the client does not name one",
    )

    # --- Logging ---
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )

    # --- Environment ---
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    # --- Upload Limits ---
    UPLOAD_MAX_FILE_SIZE_MB: int = Field(
        default=10,
        description="Maximum single file upload size in megabytes",
    )
    UPLOAD_MAX_BATCH_SIZE_MB: int = Field(
        default=200,
        description="Maximum total batch upload size in megabytes",
    )

    @property
    def upload_max_file_size_bytes(self) -> int:
        return self.UPLOAD_MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def upload_max_batch_size_bytes(self) -> int:
        return self.UPLOAD_MAX_BATCH_SIZE_MB * 1024 * 1024

    @property
    def compression_max_size_bytes(self) -> int:
        return self.COMPRESSION_MAX_SIZE_KB * 1024

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Return the singleton Settings instance (thread-safe)."""
    global _settings_instance
    if _settings_instance is None:
        with _settings_lock:
            if _settings_instance is None:
                _settings_instance = Settings()
    return _settings_instance
