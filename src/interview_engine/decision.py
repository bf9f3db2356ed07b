"""Decision engine — pure risk scoring over a completed answer map.

``decide()`` has no side effects and no hidden inputs: the evaluation date
is a parameter, so identical answers and dates always produce identical
results.

Scoring (additive):

  ============================  ======
  Signal                        Points
  ============================  ======
  age > 50                      30
  age 31-50                     15
  age <= 30                     5
  BMI > 30                      25
  BMI > 25                      15
  BMI < 18.5                    10
  smoker                        40
  pre-existing conditions       30
  coverage / income > 20        20
  coverage / income > 15        10
  ============================  ======

Outcome: score < 30 accept, < 70 refer, otherwise reject.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Mapping

from interview_engine.constants import (
    COVERAGE_FIELD,
    DATE_FORMAT,
    DATE_OF_BIRTH_FIELD,
    HEIGHT_FIELD,
    INCOME_FIELD,
    MEDICAL_CONDITIONS_FIELD,
    SMOKING_FIELD,
    WEIGHT_FIELD,
)
from interview_engine.errors import InvalidAnswerFormat
from interview_engine.models.decision import DecisionResult
from interview_store.models.enums import Decision

ACCEPT_BELOW = 30
REFER_BELOW = 70

_REASONS: dict[Decision, str] = {
    Decision.ACCEPT: "Low risk profile",
    Decision.REFER: "Moderate risk profile - requires manual review",
    Decision.REJECT: "High risk profile",
}


# ------------------------------------------------------------------
# Derived measures
# ------------------------------------------------------------------

def compute_age(date_of_birth: str, today: date | None = None) -> int:
    """Whole years between ``date_of_birth`` (DD/MM/YYYY) and ``today``.

    The birthday itself counts: born 01/01/2000 is 25 on 01/01/2025 and
    24 on 31/12/2024.  Raises :class:`InvalidAnswerFormat` for malformed
    or impossible dates.
    """
    if not isinstance(date_of_birth, str):
        raise InvalidAnswerFormat(DATE_OF_BIRTH_FIELD, f"expected DD/MM/YYYY, got {date_of_birth!r}")
    try:
        born = datetime.strptime(date_of_birth.strip(), DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidAnswerFormat(DATE_OF_BIRTH_FIELD, str(exc)) from exc

    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def compute_bmi(height_cm: float, weight_kg: float) -> float:
    """Body-mass index from centimetres and kilograms."""
    meters = height_cm / 100
    return weight_kg / (meters * meters)


def coverage_ratio(coverage: float, income: float) -> float:
    """Coverage divided by income; infinite when income is zero."""
    if income <= 0:
        return math.inf if coverage > 0 else 0.0
    return coverage / income


def _number(answers: Mapping[str, Any], field: str, *, required: bool) -> float:
    value = answers.get(field)
    if value is None or value == "":
        if required:
            raise InvalidAnswerFormat(field, "missing value")
        return 0.0
    if isinstance(value, bool):
        raise InvalidAnswerFormat(field, f"expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidAnswerFormat(field, f"expected a number, got {value!r}") from exc
    if required and number <= 0:
        raise InvalidAnswerFormat(field, f"expected a positive number, got {value!r}")
    return number


def has_conditions(value: Any) -> bool:
    """True for a "Yes" answer or a non-empty prefilled condition list."""
    if isinstance(value, list):
        return any(isinstance(v, str) and v.strip() for v in value)
    return value == "Yes"


# ------------------------------------------------------------------
# Scoring
# ------------------------------------------------------------------

def _age_points(age: int) -> int:
    if age > 50:
        return 30
    if age > 30:
        return 15
    return 5


def _bmi_points(bmi: float) -> int:
    if bmi > 30:
        return 25
    if bmi > 25:
        return 15
    if bmi < 18.5:
        return 10
    return 0


def _ratio_points(ratio: float) -> int:
    if ratio > 20:
        return 20
    if ratio > 15:
        return 10
    return 0


def decide(answers: Mapping[str, Any], today: date | None = None) -> DecisionResult:
    """Score ``answers`` and return the underwriting decision.

    Missing income or coverage count as zero; a missing or malformed date
    of birth, height or weight raises :class:`InvalidAnswerFormat`.
    """
    age = compute_age(answers.get(DATE_OF_BIRTH_FIELD), today=today)
    bmi = compute_bmi(
        _number(answers, HEIGHT_FIELD, required=True),
        _number(answers, WEIGHT_FIELD, required=True),
    )
    ratio = coverage_ratio(
        _number(answers, COVERAGE_FIELD, required=False),
        _number(answers, INCOME_FIELD, required=False),
    )

    score = _age_points(age) + _bmi_points(bmi) + _ratio_points(ratio)
    if answers.get(SMOKING_FIELD) == "Yes":
        score += 40
    if has_conditions(answers.get(MEDICAL_CONDITIONS_FIELD)):
        score += 30

    if score < ACCEPT_BELOW:
        decision = Decision.ACCEPT
    elif score < REFER_BELOW:
        decision = Decision.REFER
    else:
        decision = Decision.REJECT

    return DecisionResult(
        decision=decision,
        reason=_REASONS[decision],
        risk_score=score,
        age=age,
        bmi=round(bmi, 2),
        coverage_ratio=ratio,
    )
