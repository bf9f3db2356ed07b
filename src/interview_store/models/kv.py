"""KeyValueRecord ORM model — one row per stored JSON document.

Every repository namespace (sessions, transcripts, uploads, extraction
jobs, confirmations, idempotency replies) shares this table; the
``(namespace, key)`` pair is the primary key.  Documents live in a JSONB
column so the SDK can load a whole entity in a single round trip.
"""

from datetime import datetime, timezone

from sqlalchemy import Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from interview_store.models.base import Base


class KeyValueRecord(Base):
    """A namespaced JSON document with an optional expiry."""

    __tablename__ = "kv_records"

    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    key: Mapped[str] = mapped_column(Text, primary_key=True)

    value: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    # NULL means the record never expires
    expires_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        # Partial index so the purge sweep only scans expiring rows
        Index(
            "ix_kv_records_expires_at",
            "expires_at",
            postgresql_where=text("expires_at IS NOT NULL"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<KeyValueRecord(namespace={self.namespace!r}, key={self.key!r}, "
            f"expires_at={self.expires_at!r})>"
        )
