"""
Resolve the images of bulk-imported questions to stored URLs.

All images of all questions go through a single batch so that an image
shared by several questions (a common diagram, a repeated option picture)
is uploaded once. A question is marked failed only when one of its own
images failed; the rest of the import is unaffected.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from examassets.core.exceptions import ValidationException
from examassets.models.assets import BatchItem, UploadStatus
from examassets.models.questions import QuestionMedia, QuestionMediaResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from examassets.models.assets import BatchReport
    from examassets.services.assets.batch import BatchUploadCoordinator

logger = logging.getLogger(__name__)


def image_item_id(question_key: str) -> str:
    return f"{question_key}:image"


def solution_item_id(question_key: str) -> str:
    return f"{question_key}:solution"


def option_item_id(question_key: str, index: int) -> str:
    return f"{question_key}:option:{index}"


def flatten_question_media(questions: Sequence[QuestionMedia]) -> list[BatchItem]:
    """Turn every image slot of every question into a batch item."""
    keys = [q.question_key for q in questions]
    if len(set(keys)) != len(keys):
        raise ValidationException("Question keys must be unique within an import")

    items: list[BatchItem] = []
    for question in questions:
        if question.image is not None:
            items.append(BatchItem(item_id=image_item_id(question.question_key), asset=question.image))
        if question.solution_image is not None:
            items.append(
                BatchItem(item_id=solution_item_id(question.question_key), asset=question.solution_image)
            )
        for index, option_image in enumerate(question.option_images):
            if option_image is not None:
                items.append(
                    BatchItem(item_id=option_item_id(question.question_key, index), asset=option_image)
                )
    return items


async def resolve_question_media(
    coordinator: BatchUploadCoordinator,
    questions: Sequence[QuestionMedia],
    folder: str = "questions",
) -> tuple[list[QuestionMediaResult], BatchReport]:
    """Upload the images of ``questions`` and map the URLs back onto them."""
    items = flatten_question_media(questions)
    report = await coordinator.run(items, folder)
    results = [_assemble(question, report) for question in questions]

    failed = sum(1 for r in results if not r.ok)
    if failed:
        logger.warning(
            "%d of %d questions have images that failed to upload",
            failed,
            len(results),
            extra={"batch_id": report.batch_id},
        )
    return results, report


def _assemble(question: QuestionMedia, report: BatchReport) -> QuestionMediaResult:
    by_id = {item.item_id: item for item in report.items}
    result = QuestionMediaResult(question_key=question.question_key)

    def _url(item_id: str) -> str:
        item = by_id.get(item_id)
        if item is None:
            return ""
        if item.status == UploadStatus.FAILED:
            result.ok = False
            result.errors.append(f"{item_id}: {item.error or 'upload failed'}")
            return ""
        return item.url or ""

    if question.image is not None:
        result.media_url = _url(image_item_id(question.question_key))
    if question.solution_image is not None:
        result.solution_media_url = _url(solution_item_id(question.question_key))
    result.option_images = [
        _url(option_item_id(question.question_key, index)) if image is not None else ""
        for index, image in enumerate(question.option_images)
    ]
    return result
