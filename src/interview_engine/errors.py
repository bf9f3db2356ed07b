"""Exception taxonomy for the interview SDK.

Every error the SDK raises on purpose derives from :class:`InterviewError`,
itself a ``ValueError`` so callers that only know the standard library can
still catch it.  Each class declares the HTTP status and machine-readable
code the server maps it to; the SDK itself never imports the web layer.

Provider failures (:class:`ExternalProviderFailure`) are absorbed inside
the extraction pipeline and never reach an API caller.  An extraction
timeout is not an exception at all; it is recorded as a failed job.
"""

from __future__ import annotations


class InterviewError(ValueError):
    """Base class for expected, caller-facing SDK errors."""

    status_code: int = 400
    code: str = "bad_request"
    # Safe to echo to the client verbatim
    public_message: str = "Invalid request"


# ------------------------------------------------------------------
# Not found (404)
# ------------------------------------------------------------------

class NotFoundError(InterviewError):
    status_code = 404
    code = "not_found"
    public_message = "Resource not found"


class SessionNotFound(NotFoundError):
    public_message = "Session not found"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: session_id={session_id}")
        self.session_id = session_id


class NoExtractionForSession(NotFoundError):
    public_message = "Extraction not found for session"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Extraction not found for session: session_id={session_id}")
        self.session_id = session_id


class CandidateNotFound(NotFoundError):
    public_message = "Candidate not found"

    def __init__(self, session_id: str, candidate_id: str) -> None:
        super().__init__(
            f"Candidate not found: session_id={session_id}, candidate_id={candidate_id}"
        )
        self.candidate_id = candidate_id


# ------------------------------------------------------------------
# Validation (422)
# ------------------------------------------------------------------

class AnswerValidationError(InterviewError):
    """An answer failed the question's constraints.

    ``field_errors`` is a list of ``{"questionId", "message"}`` dicts; the
    first message doubles as the summary message.
    """

    status_code = 422
    code = "VALIDATION_ERROR"

    def __init__(self, question_id: str, messages: list[str]) -> None:
        self.question_id = question_id
        self.field_errors = [
            {"questionId": question_id, "message": m} for m in messages
        ]
        self.public_message = messages[0] if messages else "Invalid answer"
        super().__init__(f"Validation failed for {question_id}: {'; '.join(messages)}")


class InvalidAnswerFormat(InterviewError):
    """A stored answer cannot be interpreted (e.g. malformed date of birth)."""

    status_code = 422
    code = "invalid_answer_format"

    def __init__(self, field: str, detail: str) -> None:
        self.field = field
        self.public_message = f"Invalid value for {field}"
        super().__init__(f"Invalid answer format for {field}: {detail}")


# ------------------------------------------------------------------
# Bad request (400)
# ------------------------------------------------------------------

class InvalidQuestion(InterviewError):
    status_code = 400
    code = "invalid_question"
    public_message = "Invalid question ID"


class MissingParameter(InterviewError):
    """A required request parameter was absent."""

    def __init__(self, name: str) -> None:
        self.public_message = f"{name} required"
        super().__init__(f"Missing required parameter: {name}")


class UploadRejected(InterviewError):
    """An upload failed type, size or per-session count checks."""

    code = "invalid_upload"

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        self.status_code = status_code
        self.public_message = message
        super().__init__(message)


# ------------------------------------------------------------------
# Conflict (409)
# ------------------------------------------------------------------

class SessionClosed(InterviewError):
    status_code = 409
    code = "conflict"
    public_message = "Session is closed"

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(f"Session is closed: session_id={session_id}, status={status}")
        self.session_id = session_id


class CandidateLocked(InterviewError):
    status_code = 409
    code = "conflict"
    public_message = "Candidate already confirmed"


class IdempotencyKeyReused(InterviewError):
    """Same Idempotency-Key replayed with a different request body."""

    status_code = 409
    code = "idempotency_key_reused"
    public_message = "Idempotency-Key was already used with a different request body"


# ------------------------------------------------------------------
# Providers (absorbed internally)
# ------------------------------------------------------------------

class ExternalProviderFailure(RuntimeError):
    """A text or condition provider could not produce output."""
