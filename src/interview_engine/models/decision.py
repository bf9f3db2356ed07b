"""Decision engine output."""

from pydantic import BaseModel

from interview_store.models.enums import Decision


class DecisionResult(BaseModel):
    """Outcome of :func:`interview_engine.decision.decide`.

    Only ``decision`` and ``reason`` reach API callers; the remaining
    attributes are kept on the session for audit.
    """

    decision: Decision
    reason: str
    risk_score: int
    age: int
    bmi: float
    coverage_ratio: float
