"""interview_store — keyed persistence for interview sessions and intake.

This package provides the record models, the abstract keyed store with an
in-memory and a PostgreSQL implementation, and the typed repositories the
SDK is wired with.  The SQL backend's modules are imported lazily so the
in-memory path never needs a database driver.
"""

from interview_store.models.enums import ExtractionStatus, SessionStatus
from interview_store.repository import Repositories, build_repositories
from interview_store.store import InMemoryKeyValueStore, KeyValueStore

__all__ = [
    "ExtractionStatus",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "Repositories",
    "SessionStatus",
    "build_repositories",
]
