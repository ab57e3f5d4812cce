"""
Shared pieces of the persisted models: identifiers, UTC timestamps, and a
document base that records when it was created and last changed.
"""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def generate_uuid() -> str:
    return str(uuid4())


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class MongoBaseModel(BaseModel):
    """A document stored in MongoDB.

    Raw Motor results validate directly; ``_id`` is projected away by the
    repositories, so it never reaches the model.
    """

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    created_at: datetime = Field(default_factory=utc_now, description="Creation time (UTC).")
    updated_at: datetime = Field(default_factory=utc_now, description="Last change (UTC).")

    def touch(self, at: datetime | None = None) -> datetime:
        """Record a change at ``at`` (default: now) and return that time."""
        self.updated_at = at or utc_now()
        return self.updated_at
