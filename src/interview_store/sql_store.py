"""PostgreSQL-backed :class:`KeyValueStore` using async SQLAlchemy.

All documents share the ``kv_records`` table (see
:mod:`interview_store.models.kv`).  Writes are single-statement upserts
(``INSERT ... ON CONFLICT DO UPDATE``) and each operation runs in its own
short transaction, so the store can be shared by every request and
background extraction task.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, or_, select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from interview_store.engine import dispose_engine, get_session_factory
from interview_store.models.kv import KeyValueRecord
from interview_store.store import KeyValueStore

logger = logging.getLogger(__name__)


def _live_clause(now: datetime):
    return or_(KeyValueRecord.expires_at.is_(None), KeyValueRecord.expires_at > now)


def upsert_statement(
    namespace: str,
    key: str,
    value: dict[str, Any],
    *,
    now: datetime,
    ttl_seconds: int | None = None,
):
    """INSERT ... ON CONFLICT (namespace, key) DO UPDATE for one document."""
    expires_at = now + timedelta(seconds=ttl_seconds) if ttl_seconds else None
    stmt = insert(KeyValueRecord).values(
        namespace=namespace,
        key=key,
        value=value,
        created_at=now,
        updated_at=now,
        expires_at=expires_at,
    )
    return stmt.on_conflict_do_update(
        index_elements=[KeyValueRecord.namespace, KeyValueRecord.key],
        set_={
            "value": stmt.excluded.value,
            "updated_at": now,
            "expires_at": stmt.excluded.expires_at,
        },
    )


def select_live_statement(namespace: str, key: str, *, now: datetime):
    return select(KeyValueRecord.value).where(
        KeyValueRecord.namespace == namespace,
        KeyValueRecord.key == key,
        _live_clause(now),
    )


def purge_statement(now: datetime):
    return delete(KeyValueRecord).where(
        KeyValueRecord.expires_at.is_not(None),
        KeyValueRecord.expires_at <= now,
    )


class SqlKeyValueStore(KeyValueStore):
    """Keyed store over the ``kv_records`` table.

    Args:
        session_factory: optional override; defaults to the process-wide
            factory from :func:`interview_store.engine.get_session_factory`.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._factory = session_factory or get_session_factory()

    async def get(self, namespace: str, key: str) -> dict[str, Any] | None:
        stmt = select_live_statement(namespace, key, now=datetime.now(timezone.utc))
        async with self._factory() as db:
            result = await db.execute(stmt)
            return result.scalar_one_or_none()

    async def put(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        *,
        ttl_seconds: int | None = None,
    ) -> None:
        stmt = upsert_statement(
            namespace, key, value,
            now=datetime.now(timezone.utc), ttl_seconds=ttl_seconds,
        )
        async with self._factory() as db:
            await db.execute(stmt)
            await db.commit()

    async def delete(self, namespace: str, key: str) -> bool:
        stmt = delete(KeyValueRecord).where(
            KeyValueRecord.namespace == namespace,
            KeyValueRecord.key == key,
        )
        async with self._factory() as db:
            result = await db.execute(stmt)
            await db.commit()
            return result.rowcount > 0

    async def keys(self, namespace: str) -> list[str]:
        now = datetime.now(timezone.utc)
        stmt = (
            select(KeyValueRecord.key)
            .where(KeyValueRecord.namespace == namespace, _live_clause(now))
            .order_by(KeyValueRecord.created_at)
        )
        async with self._factory() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def purge_expired(self) -> int:
        stmt = purge_statement(datetime.now(timezone.utc))
        async with self._factory() as db:
            result = await db.execute(stmt)
            await db.commit()
        affected = result.rowcount or 0
        logger.info("Purged %d expired kv_records rows", affected)
        return affected

    async def ping(self) -> bool:
        async with self._factory() as db:
            await db.execute(text("SELECT 1"))
        return True

    async def close(self) -> None:
        await dispose_engine()
