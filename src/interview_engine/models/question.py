"""Question catalog models — loaded from ``data/questions.yaml``.

A question's ``constraints`` mean different things by type: for ``text``
``min``/``max`` bound the length, for ``number`` they bound the value.
Questions are frozen once the catalog has loaded.
"""

import enum

from pydantic import ConfigDict, Field

from interview_store.models.base import CamelModel


class QuestionType(str, enum.Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT_ONE = "selectOne"
    SELECT_MANY = "selectMany"


class QuestionConstraints(CamelModel):
    model_config = ConfigDict(frozen=True)

    required: bool = False
    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    sensitive: bool = False


class Question(CamelModel):
    """One interview question as served to the client."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: QuestionType
    prompt: str
    help_text: str | None = None
    options: list[str] | None = None
    field: str
    constraints: QuestionConstraints = Field(default_factory=QuestionConstraints)
