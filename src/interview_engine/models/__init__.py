"""Pydantic models exchanged between the SDK and its callers."""

from interview_engine.models.decision import DecisionResult
from interview_engine.models.envelope import (
    AnswerResult,
    EndSessionResult,
    PrefillContext,
    QuestionEnvelope,
    TranscriptView,
)
from interview_engine.models.intake import (
    CandidateEdit,
    ConditionEntry,
    ConfirmationResult,
    ConfirmationSubmission,
    DictionaryHit,
    ExtractedTerm,
    ExtractionSummary,
    PrefillAnswer,
    UploadAccepted,
)
from interview_engine.models.question import Question, QuestionConstraints, QuestionType

__all__ = [
    "AnswerResult",
    "CandidateEdit",
    "ConditionEntry",
    "ConfirmationResult",
    "ConfirmationSubmission",
    "DecisionResult",
    "DictionaryHit",
    "EndSessionResult",
    "ExtractedTerm",
    "ExtractionSummary",
    "PrefillAnswer",
    "PrefillContext",
    "Question",
    "QuestionConstraints",
    "QuestionEnvelope",
    "QuestionType",
    "TranscriptView",
    "UploadAccepted",
]
