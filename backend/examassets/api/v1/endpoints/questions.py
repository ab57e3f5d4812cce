"""
Question media import endpoint.

Used by the bulk question importer: the client uploads every image file
once and a manifest naming which file belongs to which question slot.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field, ValidationError

from examassets.api.v1.uploads import normalize_folder, read_uploads
from examassets.core.exceptions import ValidationException
from examassets.models.assets import Asset
from examassets.models.questions import QuestionMedia, QuestionMediaResult
from examassets.services.assets.batch import BatchRepository, BatchUploadCoordinator
from examassets.services.assets.factory import get_batch_coordinator, get_batch_repository
from examassets.services.questions.media import resolve_question_media

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/questions", tags=["questions"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class QuestionManifestEntry(BaseModel):
    """File names of one question's images, as uploaded in ``files``."""

    question_key: str = Field(..., min_length=1)
    image: str | None = Field(default=None)
    solution_image: str | None = Field(default=None)
    option_images: list[str | None] = Field(default_factory=list)


class QuestionMediaImportResponse(BaseModel):
    """Per-question URLs plus the batch that produced them."""

    batch_id: str = Field(..., description="ID of the stored batch report.")
    questions: list[QuestionMediaResult] = Field(default_factory=list)
    failed_questions: list[str] = Field(
        default_factory=list,
        description="Keys of questions with at least one failed image.",
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_manifest(raw: str) -> list[QuestionManifestEntry]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationException(f"Manifest is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, list):
        raise ValidationException("Manifest must be a JSON list of question entries")
    try:
        return [QuestionManifestEntry.model_validate(entry) for entry in data]
    except ValidationError as exc:
        raise ValidationException(
            "Manifest entry is invalid",
            errors=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()],
        ) from exc


def _build_questions(
    manifest: list[QuestionManifestEntry],
    assets: dict[str, Asset],
) -> list[QuestionMedia]:
    missing: list[str] = []

    def _lookup(name: str | None) -> Asset | None:
        if name is None or name == "":
            return None
        asset = assets.get(name)
        if asset is None:
            missing.append(name)
        return asset

    questions = [
        QuestionMedia(
            question_key=entry.question_key,
            image=_lookup(entry.image),
            solution_image=_lookup(entry.solution_image),
            option_images=[_lookup(name) for name in entry.option_images],
        )
        for entry in manifest
    ]
    if missing:
        raise ValidationException(
            "Manifest references files that were not uploaded",
            errors=[{"file": name, "error": "missing"} for name in sorted(set(missing))],
        )
    return questions


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/media/import",
    response_model=QuestionMediaImportResponse,
    summary="Upload the images of imported questions",
    description="Uploads all images referenced by the manifest in one deduplicated "
    "batch and returns the URLs per question slot.",
)
async def import_question_media(
    files: list[UploadFile] = File(..., description="Image files referenced by the manifest."),
    manifest: str = Form(..., description="JSON list of question entries."),
    folder: str | None = Form(default=None, description="Storage folder."),
    coordinator: BatchUploadCoordinator = Depends(get_batch_coordinator),
    repository: BatchRepository = Depends(get_batch_repository),
) -> QuestionMediaImportResponse:
    entries = _parse_manifest(manifest)
    uploaded = await read_uploads(files)
    questions = _build_questions(entries, {asset.filename: asset for asset in uploaded})

    results, report = await resolve_question_media(coordinator, questions, normalize_folder(folder))
    await repository.save(report)

    return QuestionMediaImportResponse(
        batch_id=report.batch_id,
        questions=results,
        failed_questions=[r.question_key for r in results if not r.ok],
    )
