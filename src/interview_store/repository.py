"""Typed async repositories over a :class:`KeyValueStore`.

Each repository owns one namespace and one Pydantic record type.  The SDK
receives repositories by injection (see :class:`Repositories`) instead of
reaching for module-level registries, so the backing store can be swapped
without touching call sites.

The repositories deliberately avoid business rules — status transitions,
locking and validation belong to the SDK layer.  They only translate
between records and JSON documents and apply the configured TTL on every
write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Generic, TypeVar

from pydantic import BaseModel

from interview_store.models.records import (
    ConfirmationRecord,
    ExtractionJob,
    IdempotencyRecord,
    SessionRecord,
    TranscriptEntry,
    TranscriptRecord,
    UploadRecord,
    utcnow,
)
from interview_store.store import KeyValueStore

RecordT = TypeVar("RecordT", bound=BaseModel)


class JsonRepository(Generic[RecordT]):
    """Load/save one record type in one namespace of the keyed store."""

    namespace: ClassVar[str]
    model: ClassVar[type[BaseModel]]

    def __init__(self, store: KeyValueStore, *, ttl_seconds: int | None = None) -> None:
        self._store = store
        self._ttl = ttl_seconds or None

    async def get(self, key: str) -> RecordT | None:
        raw = await self._store.get(self.namespace, key)
        if raw is None:
            return None
        return self.model.model_validate(raw)  # type: ignore[return-value]

    async def put(self, key: str, record: RecordT) -> RecordT:
        await self._store.put(
            self.namespace,
            key,
            record.model_dump(mode="json"),
            ttl_seconds=self._ttl,
        )
        return record

    async def delete(self, key: str) -> bool:
        return await self._store.delete(self.namespace, key)

    async def keys(self) -> list[str]:
        return await self._store.keys(self.namespace)


# ------------------------------------------------------------------
# Entity repositories
# ------------------------------------------------------------------

class SessionRepository(JsonRepository[SessionRecord]):
    namespace = "sessions"
    model = SessionRecord

    async def save(self, session: SessionRecord) -> SessionRecord:
        """Stamp ``updated_at`` and persist the session under its id."""
        session.updated_at = utcnow()
        return await self.put(session.id, session)


class TranscriptRepository(JsonRepository[TranscriptRecord]):
    namespace = "transcripts"
    model = TranscriptRecord

    async def append(self, session_id: str, *entries: TranscriptEntry) -> TranscriptRecord:
        """Append entries to a session's transcript, creating it if needed.

        Callers must hold the session lock; the read-modify-write here is
        not atomic on its own.
        """
        record = await self.get(session_id) or TranscriptRecord(session_id=session_id)
        record.items.extend(entries)
        return await self.put(session_id, record)


class UploadRepository(JsonRepository[UploadRecord]):
    namespace = "uploads"
    model = UploadRecord

    async def save(self, upload: UploadRecord) -> UploadRecord:
        return await self.put(upload.file_id, upload)


class ExtractionJobRepository(JsonRepository[ExtractionJob]):
    """Extraction jobs keyed by session id (one job per session)."""

    namespace = "extractions"
    model = ExtractionJob

    async def save(self, job: ExtractionJob) -> ExtractionJob:
        return await self.put(job.session_id, job)


class ConfirmationRepository(JsonRepository[ConfirmationRecord]):
    namespace = "confirmations"
    model = ConfirmationRecord

    async def save(self, record: ConfirmationRecord) -> ConfirmationRecord:
        return await self.put(record.session_id, record)


class IdempotencyRepository(JsonRepository[IdempotencyRecord]):
    """Cached HTTP replies keyed by ``"<path>|<Idempotency-Key>"``."""

    namespace = "idempotency"
    model = IdempotencyRecord

    @staticmethod
    def compose_key(path: str, key: str) -> str:
        return f"{path}|{key}"

    async def lookup(self, path: str, key: str) -> IdempotencyRecord | None:
        return await self.get(self.compose_key(path, key))

    async def remember(self, record: IdempotencyRecord) -> IdempotencyRecord:
        return await self.put(self.compose_key(record.path, record.key), record)


# ------------------------------------------------------------------
# Bundle
# ------------------------------------------------------------------

@dataclass
class Repositories:
    """All repositories wired to one store, ready for injection."""

    store: KeyValueStore
    sessions: SessionRepository
    transcripts: TranscriptRepository
    uploads: UploadRepository
    extractions: ExtractionJobRepository
    confirmations: ConfirmationRepository
    idempotency: IdempotencyRepository


def build_repositories(
    store: KeyValueStore,
    *,
    ttl_seconds: int | None = None,
    idempotency_ttl_seconds: int | None = None,
) -> Repositories:
    """Wire every repository to ``store``.

    ``ttl_seconds`` applies to all entity records; idempotency replies get
    their own (usually shorter) lifetime.
    """
    return Repositories(
        store=store,
        sessions=SessionRepository(store, ttl_seconds=ttl_seconds),
        transcripts=TranscriptRepository(store, ttl_seconds=ttl_seconds),
        uploads=UploadRepository(store, ttl_seconds=ttl_seconds),
        extractions=ExtractionJobRepository(store, ttl_seconds=ttl_seconds),
        confirmations=ConfirmationRepository(store, ttl_seconds=ttl_seconds),
        idempotency=IdempotencyRepository(store, ttl_seconds=idempotency_ttl_seconds),
    )
