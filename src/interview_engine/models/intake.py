"""Intake models — extraction terms, dictionary entries, prefill and summaries.

These are the contracts between the extraction pipeline, the intake
coordinator and API callers.  Persisted intake state (jobs, candidates,
confirmations) lives in :mod:`interview_store.models.records`.
"""

from datetime import datetime
from typing import Literal

from pydantic import Field

from interview_store.models.base import CamelModel
from interview_store.models.enums import CandidateStatus, ExtractionStatus
from interview_store.models.records import (
    CandidateCondition,
    ConfirmedCondition,
    ManualCondition,
)


class ConditionEntry(CamelModel):
    """One canonical condition in the dictionary."""

    code: str
    label: str
    synonyms: list[str] = Field(default_factory=list)
    category: str


class DictionaryHit(CamelModel):
    """Public projection of a dictionary entry returned by search."""

    code: str
    label: str
    category: str


class ExtractedTerm(CamelModel):
    """A raw condition mention produced by a condition provider."""

    term: str
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    status: CandidateStatus | None = None
    severity: str | None = None
    onset_date: str | None = None
    page: int = 1


class PrefillAnswer(CamelModel):
    question_id: str
    answer: str | list[str]
    source: Literal["prefill"] = "prefill"
    evidence_refs: list[str] = Field(default_factory=list)


class ConfirmationResult(CamelModel):
    session_id: str
    confirmed_count: int
    rejected_count: int
    prefill: list[PrefillAnswer]


class ConfirmationSubmission(CamelModel):
    """Body of a confirmation request."""

    session_id: str | None = None
    confirmed: list[ConfirmedCondition] = Field(default_factory=list)
    rejected: list[str] = Field(default_factory=list)
    manual_add: list[ManualCondition] = Field(default_factory=list)


class CandidateEdit(CamelModel):
    """Applicant edits to a candidate before confirmation."""

    status: CandidateStatus | None = None
    severity: str | None = None
    onset_date: str | None = None


class ExtractionSummary(CamelModel):
    """Polling view of a session's extraction job."""

    session_id: str
    status: ExtractionStatus
    extraction_status: ExtractionStatus
    candidates: list[CandidateCondition] = Field(default_factory=list)
    completed_at: datetime | None = None
    message: str | None = None


class UploadAccepted(CamelModel):
    file_id: str
    status: str
    message: str = "File uploaded successfully"
