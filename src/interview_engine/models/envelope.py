"""Envelope models — what the orchestrator returns to API callers.

``QuestionEnvelope`` is the single response shape for both "ask the next
question" and "the interview is over": callers dispatch on
``is_terminal``.
"""

from interview_store.models.base import CamelModel
from interview_store.models.enums import Decision
from interview_store.models.records import TranscriptEntry

from interview_engine.models.intake import PrefillAnswer
from interview_engine.models.question import Question


class PrefillContext(CamelModel):
    """Adaptive context attached to a question backed by confirmed evidence."""

    adaptive_prompt: str
    confirmed_conditions: list[str]
    prefill: PrefillAnswer | None = None


class QuestionEnvelope(CamelModel):
    question: Question | None = None
    is_terminal: bool = False
    progress: float
    decision: Decision | None = None
    decision_reason: str | None = None
    prefill_context: PrefillContext | None = None


class AnswerResult(CamelModel):
    """Response to an accepted answer."""

    accepted: bool = True
    next_question: QuestionEnvelope


class EndSessionResult(CamelModel):
    id: str
    status: str


class TranscriptView(CamelModel):
    session_id: str
    items: list[TranscriptEntry]
