"""Shared fixtures: reference data loaded once, fresh store per test."""

from datetime import date, datetime, timedelta, timezone

import pytest

from interview_engine.catalog import QuestionCatalog
from interview_engine.dictionary import ConditionDictionary
from interview_engine.prompt import PromptManager
from interview_store.repository import build_repositories
from interview_store.store import InMemoryKeyValueStore

# Evaluation date for every decision made in tests
FIXED_TODAY = date(2025, 1, 1)

# Answers in catalog order (q-001 .. q-010) for a low-risk applicant:
# age 35 (+15), BMI 22.9, non-smoker, no conditions, ratio 4 → score 15.
LOW_RISK_ANSWERS: list[tuple[str, object]] = [
    ("q-001", "John Michael Smith"),
    ("q-002", "01/01/1990"),
    ("q-003", "Male"),
    ("q-004", 175),
    ("q-005", 70),
    ("q-006", "No"),
    ("q-007", "No"),
    ("q-008", 50000),
    ("q-009", 200000),
    ("q-010", "Family Protection"),
]


class FakeClock:
    """Manually advanced UTC clock for job-timeout tests."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture(scope="session")
def catalog():
    """Load the packaged question catalog once for the entire test session."""
    c = QuestionCatalog()
    c.load()
    return c


@pytest.fixture(scope="session")
def dictionary():
    d = ConditionDictionary()
    d.load()
    return d


@pytest.fixture(scope="session")
def prompts():
    return PromptManager()


@pytest.fixture
def kv_store():
    """Fresh in-memory keyed store for each test."""
    return InMemoryKeyValueStore()


@pytest.fixture
def repos(kv_store):
    return build_repositories(kv_store)


@pytest.fixture
def clock():
    return FakeClock()
