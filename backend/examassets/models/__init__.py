"""
Exam asset service data models package.

Pydantic v2 models for upload inputs, results, and MongoDB documents.
Import from this module for convenient access to every model and enum.
"""

# Asset upload models
from examassets.models.assets import (
    Asset,
    BatchItem,
    BatchItemResult,
    BatchReport,
    BatchStatus,
    RegistryEntry,
    UploadOutcome,
    UploadStatus,
)

# Base model and helpers
from examassets.models.base import (
    MongoBaseModel,
    generate_uuid,
    utc_now,
)

# Question media models
from examassets.models.questions import (
    QuestionMedia,
    QuestionMediaResult,
)

__all__ = [
    "Asset",
    "BatchItem",
    "BatchItemResult",
    "BatchReport",
    "BatchStatus",
    "MongoBaseModel",
    "QuestionMedia",
    "QuestionMediaResult",
    "RegistryEntry",
    "UploadOutcome",
    "UploadStatus",
    "generate_uuid",
    "utc_now",
]
