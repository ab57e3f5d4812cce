"""
Validation of multipart uploads shared by the asset and question endpoints.

Files are checked for name, type, and size, then fully read into memory
as ``Asset`` values for the deduplicating uploader.
"""

from __future__ import annotations

from fastapi import HTTPException, UploadFile

from examassets.config import get_settings
from examassets.models.assets import Asset
from examassets.services.assets.object_store import sanitize_segment

ALLOWED_EXTENSIONS: set[str] = {
    ".jpg",
    ".jpeg",
    ".png",
    ".webp",
    ".gif",
    ".svg",
    ".bmp",
}


def validate_file_extension(filename: str) -> bool:
    """Check if the file extension is in the allowed set."""
    lower = filename.lower()
    return any(lower.endswith(ext) for ext in ALLOWED_EXTENSIONS)


def normalize_folder(folder: str | None) -> str:
    """Sanitise a client-supplied folder, falling back to the default one."""
    parts = [sanitize_segment(p) for p in (folder or "").split("/") if p.strip() and p.strip() != ".."]
    return "/".join(parts) or get_settings().DEFAULT_UPLOAD_FOLDER


async def read_uploads(files: list[UploadFile]) -> list[Asset]:
    """Validate and read every uploaded file.

    Raises:
        HTTPException: 400 for missing files or names, 422 for empty or
            disallowed files, 413 when a size limit is exceeded.
    """
    settings = get_settings()

    if not files:
        raise HTTPException(status_code=400, detail="No files provided.")

    assets: list[Asset] = []
    total_size = 0

    for upload in files:
        if not upload.filename:
            raise HTTPException(status_code=400, detail="A file is missing a filename.")

        if not validate_file_extension(upload.filename):
            raise HTTPException(
                status_code=422,
                detail=f"File type not allowed: '{upload.filename}'. "
                f"Allowed extensions: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
            )

        content = await upload.read()
        file_size = len(content)

        if file_size == 0:
            raise HTTPException(
                status_code=422,
                detail=f"File '{upload.filename}' is empty.",
            )

        if file_size > settings.upload_max_file_size_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File '{upload.filename}' exceeds maximum size of "
                f"{settings.UPLOAD_MAX_FILE_SIZE_MB} MB.",
            )

        total_size += file_size
        if total_size > settings.upload_max_batch_size_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Total batch size exceeds maximum of "
                f"{settings.UPLOAD_MAX_BATCH_SIZE_MB} MB.",
            )

        assets.append(
            Asset(
                filename=upload.filename,
                content=content,
                content_type=upload.content_type or "application/octet-stream",
            )
        )

    return assets
