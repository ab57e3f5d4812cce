"""
Question media models used by the bulk question importer.

A question carries up to three kinds of images: the main image, the
solution image, and one image per answer option.
"""

from pydantic import BaseModel, Field

from examassets.models.assets import Asset


class QuestionMedia(BaseModel):
    """Images attached to one imported question."""

    question_key: str = Field(..., min_length=1, description="Client-side question identifier.")
    image: Asset | None = Field(default=None, description="Main question image.")
    solution_image: Asset | None = Field(default=None, description="Worked-solution image.")
    option_images: list[Asset | None] = Field(
        default_factory=list,
        description="Per-option images; None for options without an image.",
    )


class QuestionMediaResult(BaseModel):
    """URLs resolved for one question's images."""

    question_key: str
    media_url: str = Field(default="", description="URL of the main image, or empty.")
    solution_media_url: str = Field(default="", description="URL of the solution image, or empty.")
    option_images: list[str] = Field(
        default_factory=list,
        description="URL per option slot; empty string where the option has no image.",
    )
    ok: bool = Field(default=True, description="False when any of this question's images failed.")
    errors: list[str] = Field(default_factory=list)
