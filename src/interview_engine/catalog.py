"""QuestionCatalog — loads the ordered interview from ``questions.yaml``.

The catalog is loaded once at startup and is read-only afterwards.  Besides
lookup by id, position and answer field, it owns answer validation: every
submitted value is checked against its question's constraints and coerced
to a canonical Python value before the orchestrator stores it.

Usage::

    catalog = QuestionCatalog()      # defaults to the packaged data/ dir
    catalog.load()

    first = catalog.at(0)
    value = catalog.validate_answer(first, "John Smith")
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from interview_engine.constants import DATE_FORMAT
from interview_engine.errors import AnswerValidationError
from interview_engine.models.question import Question, QuestionType

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "This field is required"


# ---------------------------------------------------------------------------
# YAML helpers
# ---------------------------------------------------------------------------

def default_data_dir() -> Path:
    """Return the ``data/`` directory shipped inside the package."""
    return Path(__file__).resolve().parent / "data"


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


# ---------------------------------------------------------------------------
# QuestionCatalog
# ---------------------------------------------------------------------------

class QuestionCatalog:
    """Ordered, immutable list of interview questions.

    Args:
        catalog_dir: directory containing ``questions.yaml``.  Defaults to
            the packaged ``data/`` directory.
    """

    def __init__(self, catalog_dir: str | Path | None = None) -> None:
        self._base = Path(catalog_dir) if catalog_dir else default_data_dir()
        self._questions: list[Question] = []
        self._by_id: dict[str, int] = {}
        self._by_field: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Parse ``questions.yaml`` into typed questions.

        Raises ``FileNotFoundError`` if the file is missing and
        ``ValueError`` on duplicate ids or fields.
        """
        questions = [Question.model_validate(raw) for raw in load_yaml(self._base / "questions.yaml")]
        by_id: dict[str, int] = {}
        by_field: dict[str, int] = {}
        for index, question in enumerate(questions):
            if question.id in by_id:
                raise ValueError(f"Duplicate question id in catalog: {question.id}")
            if question.field in by_field:
                raise ValueError(f"Duplicate answer field in catalog: {question.field}")
            by_id[question.id] = index
            by_field[question.field] = index

        self._questions = questions
        self._by_id = by_id
        self._by_field = by_field
        logger.info("QuestionCatalog loaded: %d questions", len(questions))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._questions)

    @property
    def questions(self) -> list[Question]:
        return list(self._questions)

    def at(self, index: int) -> Question | None:
        """Question at ``index``, or ``None`` past the end."""
        if 0 <= index < len(self._questions):
            return self._questions[index]
        return None

    def get(self, question_id: str) -> Question | None:
        index = self._by_id.get(question_id)
        return None if index is None else self._questions[index]

    def index_of(self, question_id: str) -> int | None:
        return self._by_id.get(question_id)

    def by_field(self, field: str) -> Question | None:
        index = self._by_field.get(field)
        return None if index is None else self._questions[index]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_answer(self, question: Question, value: Any) -> Any:
        """Validate ``value`` against ``question`` and return the coerced value.

        Text is stripped, numbers become ``int`` when integral, dates keep
        their ``DD/MM/YYYY`` string form, and multi-selects become a list.
        An optional question answered with a blank value yields ``None``.

        Raises :class:`AnswerValidationError` with field-level messages.
        """
        constraints = question.constraints
        if _is_blank(value):
            if constraints.required:
                raise AnswerValidationError(question.id, [REQUIRED_MESSAGE])
            return None

        validator = _VALIDATORS[question.type]
        coerced, errors = validator(question, value)
        if errors:
            raise AnswerValidationError(question.id, errors)
        return coerced


# ---------------------------------------------------------------------------
# Per-type validators: (question, value) -> (coerced, [error messages])
# ---------------------------------------------------------------------------

def _validate_text(question: Question, value: Any) -> tuple[Any, list[str]]:
    if not isinstance(value, str):
        return None, ["Must be text"]
    text = value.strip()
    c = question.constraints
    errors: list[str] = []
    if c.min is not None and len(text) < c.min:
        errors.append(f"Must be at least {_format_bound(c.min)} characters")
    if c.max is not None and len(text) > c.max:
        errors.append(f"Must be at most {_format_bound(c.max)} characters")
    if c.pattern and not re.fullmatch(c.pattern, text):
        errors.append("Invalid format")
    return text, errors


def _validate_number(question: Question, value: Any) -> tuple[Any, list[str]]:
    # bool is an int subclass; "true" is never a height
    if isinstance(value, bool):
        return None, ["Must be a number"]
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", ""))
        except ValueError:
            return None, ["Must be a number"]
    else:
        return None, ["Must be a number"]
    if not math.isfinite(number):
        return None, ["Must be a number"]

    c = question.constraints
    errors: list[str] = []
    if c.min is not None and number < c.min:
        errors.append(f"Must be at least {_format_bound(c.min)}")
    if c.max is not None and number > c.max:
        errors.append(f"Must be at most {_format_bound(c.max)}")
    coerced: int | float = int(number) if number.is_integer() else number
    return coerced, errors


def _validate_date(question: Question, value: Any) -> tuple[Any, list[str]]:
    if not isinstance(value, str):
        return None, ["Must be a date in DD/MM/YYYY format"]
    text = value.strip()
    pattern = question.constraints.pattern
    if pattern and not re.fullmatch(pattern, text):
        return None, ["Invalid format"]
    try:
        parsed = datetime.strptime(text, DATE_FORMAT)
    except ValueError:
        return None, ["Invalid date"]
    if parsed > datetime.now():
        return None, ["Date cannot be in the future"]
    return text, []


def _validate_select_one(question: Question, value: Any) -> tuple[Any, list[str]]:
    if not isinstance(value, str) or value not in (question.options or []):
        return None, ["Must be one of the listed options"]
    return value, []


def _validate_select_many(question: Question, value: Any) -> tuple[Any, list[str]]:
    values = [value] if isinstance(value, str) else value
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        return None, ["Must be a list of options"]
    allowed = question.options or []
    unknown = [v for v in values if v not in allowed]
    if unknown:
        return None, [f"Unknown option: {v}" for v in unknown]
    # De-duplicate while keeping the applicant's order
    return list(dict.fromkeys(values)), []


_VALIDATORS = {
    QuestionType.TEXT: _validate_text,
    QuestionType.NUMBER: _validate_number,
    QuestionType.DATE: _validate_date,
    QuestionType.SELECT_ONE: _validate_select_one,
    QuestionType.SELECT_MANY: _validate_select_many,
}
