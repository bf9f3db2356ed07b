"""Keyed document store — the single persistence seam of the system.

Repositories never talk to a database directly; they read and write JSON
documents through a :class:`KeyValueStore`.  Two implementations ship:

* :class:`InMemoryKeyValueStore` (this module) — dictionaries with expiry
  timestamps; used for development, tests and single-process demos.
* :class:`~interview_store.sql_store.SqlKeyValueStore` — PostgreSQL via
  async SQLAlchemy.

Every document belongs to a *namespace* (one per entity type) and is
identified by a string key within it.  ``put`` accepts an optional TTL;
expired documents are invisible to ``get``/``keys`` and are physically
removed by :meth:`KeyValueStore.purge_expired`.
"""

from __future__ import annotations

import copy
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Interface for a namespaced JSON document store with optional TTL."""

    @abstractmethod
    async def get(self, namespace: str, key: str) -> dict[str, Any] | None:
        """Return the live document at ``(namespace, key)``, or ``None``."""
        ...

    @abstractmethod
    async def put(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        *,
        ttl_seconds: int | None = None,
    ) -> None:
        """Insert or replace a document.

        Parameters
        ----------
        ttl_seconds:
            Lifetime of the document from now.  ``None`` or ``0`` means the
            document never expires.
        """
        ...

    @abstractmethod
    async def delete(self, namespace: str, key: str) -> bool:
        """Remove a document.  Returns ``True`` if something was deleted."""
        ...

    @abstractmethod
    async def keys(self, namespace: str) -> list[str]:
        """Return the keys of all live documents in ``namespace``."""
        ...

    @abstractmethod
    async def purge_expired(self) -> int:
        """Physically delete expired documents and return how many went."""
        ...

    async def ping(self) -> bool:
        """Readiness check.  Backends with a connection override this."""
        return True

    async def close(self) -> None:
        """Release backend resources (call on shutdown)."""
        return None


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store backed by a dict.

    Values are deep-copied on the way in and out so callers can never
    mutate stored state by accident.

    Args:
        clock: wall-clock source in epoch seconds; injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        # (namespace, key) -> (document, expires_at epoch seconds or None)
        self._data: dict[tuple[str, str], tuple[dict[str, Any], float | None]] = {}

    def _is_live(self, expires_at: float | None) -> bool:
        return expires_at is None or expires_at > self._clock()

    async def get(self, namespace: str, key: str) -> dict[str, Any] | None:
        entry = self._data.get((namespace, key))
        if entry is None:
            return None
        value, expires_at = entry
        if not self._is_live(expires_at):
            return None
        return copy.deepcopy(value)

    async def put(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        *,
        ttl_seconds: int | None = None,
    ) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[(namespace, key)] = (copy.deepcopy(value), expires_at)

    async def delete(self, namespace: str, key: str) -> bool:
        return self._data.pop((namespace, key), None) is not None

    async def keys(self, namespace: str) -> list[str]:
        return [
            key
            for (ns, key), (_, expires_at) in self._data.items()
            if ns == namespace and self._is_live(expires_at)
        ]

    async def purge_expired(self) -> int:
        expired = [
            composite
            for composite, (_, expires_at) in self._data.items()
            if not self._is_live(expires_at)
        ]
        for composite in expired:
            del self._data[composite]
        if expired:
            logger.info("Purged %d expired in-memory records", len(expired))
        return len(expired)
