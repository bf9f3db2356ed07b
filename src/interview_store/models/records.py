"""Persisted entity shapes — one Pydantic document per repository namespace.

These models are what the repositories read and write.  They are stored as
JSON (``model_dump(mode="json")``) and served to API callers as camelCase
via :class:`~interview_store.models.base.CamelModel`.

Entities:
  - SessionRecord: one interview instance and its accumulated answers
  - TranscriptRecord: the append-only conversation log of a session
  - UploadRecord: metadata about one uploaded document
  - ExtractionJob: the per-session aggregate of candidates across files
  - ConfirmationRecord: the applicant's accept / reject / add decisions
  - IdempotencyRecord: a replayable HTTP reply keyed by Idempotency-Key
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import Field

from interview_store.models.base import CamelModel
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


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ------------------------------------------------------------------
# Sessions & transcript
# ------------------------------------------------------------------

class SessionRecord(CamelModel):
    """One interview instance.

    ``answers`` maps catalog field names to coerced values and keeps
    insertion order.  ``answer_sources`` records whether each field was
    typed by the applicant or injected from confirmed document evidence.
    """

    id: str
    tenant_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    answers: dict[str, Any] = Field(default_factory=dict)
    answer_sources: dict[str, AnswerSource] = Field(default_factory=dict)
    # Question ids whose prefill has already been consumed
    applied_prefill: list[str] = Field(default_factory=list)
    current_question_index: int = Field(default=0, ge=0)
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    decision: Decision | None = None
    decision_reason: str | None = None
    risk_score: int | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def is_closed(self) -> bool:
        return self.status != SessionStatus.ACTIVE


class TranscriptEntry(CamelModel):
    """A single line of the session transcript."""

    role: TranscriptRole
    text: str
    redacted: bool = False
    meta: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class TranscriptRecord(CamelModel):
    session_id: str
    items: list[TranscriptEntry] = Field(default_factory=list)


# ------------------------------------------------------------------
# Document intake
# ------------------------------------------------------------------

class UploadRecord(CamelModel):
    """Metadata for one uploaded document.  The bytes are never persisted."""

    file_id: str
    session_id: str
    filename: str
    mime_type: str
    size: int = Field(ge=0)
    status: UploadStatus = UploadStatus.UPLOADED
    uploaded_at: datetime = Field(default_factory=utcnow)
    extracted_at: datetime | None = None
    error: str | None = None


class CanonicalCondition(CamelModel):
    code: str
    label: str
    category: str | None = None


class Evidence(CamelModel):
    """Where a candidate came from.

    ``snippet`` is PHI-redacted and safe to display; ``raw_snippet`` is the
    untouched source text and is only for audit.
    """

    doc_id: str
    page: int = 1
    snippet: str = ""
    raw_snippet: str = ""


class CandidateCondition(CamelModel):
    """An extracted, dictionary-mapped condition awaiting applicant review."""

    id: str
    original_term: str
    canonical: CanonicalCondition
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    status: CandidateStatus | None = CandidateStatus.ACTIVE
    severity: str | None = None
    onset_date: str | None = None
    evidence: Evidence
    match_type: MatchType = MatchType.EXACT


class ExtractionJob(CamelModel):
    """Aggregate extraction state for a session, across all uploaded files.

    ``pending_files`` holds the file ids registered but not yet reported;
    the job only leaves ``processing`` once that list is empty.
    """

    session_id: str
    status: ExtractionStatus = ExtractionStatus.PROCESSING
    candidates: list[CandidateCondition] = Field(default_factory=list)
    pending_files: list[str] = Field(default_factory=list)
    succeeded_files: list[str] = Field(default_factory=list)
    failed_files: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    error: str | None = None

    @property
    def file_ids(self) -> list[str]:
        return [*self.pending_files, *self.succeeded_files, *self.failed_files]

    def find_candidate(self, candidate_id: str) -> CandidateCondition | None:
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        return None


class ConfirmedCondition(CamelModel):
    """A candidate the applicant accepted, with optional edits."""

    candidate_id: str
    status: CandidateStatus | None = None
    severity: str | None = None
    onset_date: str | None = None


class ManualCondition(CamelModel):
    """A condition the applicant added that no document mentioned."""

    code: str
    label: str
    status: CandidateStatus | None = None
    severity: str | None = None
    onset_date: str | None = None


class ConfirmationRecord(CamelModel):
    session_id: str
    confirmed: list[ConfirmedCondition] = Field(default_factory=list)
    rejected: list[str] = Field(default_factory=list)
    manual_add: list[ManualCondition] = Field(default_factory=list)
    submitted_at: datetime = Field(default_factory=utcnow)


# ------------------------------------------------------------------
# HTTP replay cache
# ------------------------------------------------------------------

class IdempotencyRecord(CamelModel):
    key: str
    path: str
    # sha256 of the canonical JSON request body
    fingerprint: str | None = None
    status_code: int = 200
    body: Any = None
    created_at: datetime = Field(default_factory=utcnow)
