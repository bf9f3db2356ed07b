"""Persisted models for interview_store."""

from interview_store.models.base import Base, CamelModel
from interview_store.models.enums import (
    AnswerSource,
    CandidateStatus,
    Decision,
    ExtractionStatus,
    MatchType,
    SessionStatus,
    TranscriptRole,
    UploadStatus,
)
from interview_store.models.records import (
    CandidateCondition,
    CanonicalCondition,
    ConfirmationRecord,
    ConfirmedCondition,
    Evidence,
    ExtractionJob,
    IdempotencyRecord,
    ManualCondition,
    SessionRecord,
    TranscriptEntry,
    TranscriptRecord,
    UploadRecord,
)

__all__ = [
    "Base",
    "CamelModel",
    # Enums
    "AnswerSource",
    "CandidateStatus",
    "Decision",
    "ExtractionStatus",
    "MatchType",
    "SessionStatus",
    "TranscriptRole",
    "UploadStatus",
    # Records
    "CandidateCondition",
    "CanonicalCondition",
    "ConfirmationRecord",
    "ConfirmedCondition",
    "Evidence",
    "ExtractionJob",
    "IdempotencyRecord",
    "ManualCondition",
    "SessionRecord",
    "TranscriptEntry",
    "TranscriptRecord",
    "UploadRecord",
]
