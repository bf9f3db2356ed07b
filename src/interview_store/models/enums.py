"""Enumerations shared by the store records and the interview SDK."""

import enum


class SessionStatus(str, enum.Enum):
    """Lifecycle states for an interview session.

    Transitions:
        active -> completed  (last answer accepted, or explicit end)
        active -> canceled   (reserved; no operation produces it yet)

    ``completed`` and ``canceled`` are terminal: the session only serves
    reads afterwards.
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"


class Decision(str, enum.Enum):
    """Underwriting outcome produced by the decision engine."""

    ACCEPT = "accept"
    REFER = "refer"
    REJECT = "reject"


class AnswerSource(str, enum.Enum):
    """Provenance of a recorded answer."""

    USER = "user"
    PREFILL = "prefill"


class TranscriptRole(str, enum.Enum):
    """Author of a transcript entry."""

    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    RULES = "rules"


class UploadStatus(str, enum.Enum):
    """Per-file state of an uploaded medical document.

    Transitions:
        uploaded -> scanning  (worker picked the file up)
        scanning -> extracted (pipeline produced candidates)
        scanning -> failed    (pipeline raised or timed out)
    """

    UPLOADED = "uploaded"
    SCANNING = "scanning"
    EXTRACTED = "extracted"
    FAILED = "failed"


class ExtractionStatus(str, enum.Enum):
    """State of the per-session extraction job.

    Transitions:
        processing -> completed  (all registered files reported, >= 1 succeeded)
        processing -> failed     (all registered files reported, none succeeded,
                                  or the polling ceiling was exceeded)
        completed -> processing  (a new file was registered)

    A failed job never returns to processing.  ``pending`` is never stored;
    it is what summaries report when no job exists yet.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CandidateStatus(str, enum.Enum):
    """Clinical status of a candidate condition, editable by the applicant."""

    ACTIVE = "active"
    RESOLVED = "resolved"


class MatchType(str, enum.Enum):
    """How an extracted term was mapped onto the condition dictionary."""

    EXACT = "exact"
    PARTIAL = "partial"
    KEYWORD = "keyword"
    DEFAULT = "default"
    UNRESOLVED = "unresolved"
