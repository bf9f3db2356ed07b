"""Store configuration — reads connection parameters from environment.

Two backends are supported:

* ``memory`` — process-local dictionaries, the default for development and
  tests.  Nothing survives a restart.
* ``sql`` — PostgreSQL via async SQLAlchemy.  The connection string comes
  from a single ``DATABASE_URL`` env var, or from the individual ``PG_HOST``,
  ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD`` and ``PG_DATABASE`` vars
  (convenient for docker-compose).

Both ``sync_url`` (used by Alembic migrations) and ``async_url`` (used by
the async engine at runtime) are exposed.
"""

import os

STORE_BACKENDS = ("memory", "sql")


def get_store_backend() -> str:
    """Return the configured store backend, validated against ``STORE_BACKENDS``."""
    backend = os.getenv("STORE_BACKEND", "memory").strip().lower()
    if backend not in STORE_BACKENDS:
        raise ValueError(
            f"Unsupported STORE_BACKEND {backend!r}; "
            f"expected one of {', '.join(STORE_BACKENDS)}"
        )
    return backend


def _build_url_from_parts() -> str:
    """Construct a PostgreSQL connection string from individual env vars."""
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "interview")
    password = os.getenv("PG_PASSWORD", "interview")
    database = os.getenv("PG_DATABASE", "interview")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def get_sync_url() -> str:
    """Return a synchronous (psycopg2 / libpq) connection URL for Alembic."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url.replace("postgresql+asyncpg://", "postgresql://")
    return _build_url_from_parts()


def get_async_url() -> str:
    """Return an asyncpg connection URL for the async SQLAlchemy engine."""
    url = os.getenv("DATABASE_URL") or _build_url_from_parts()
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url
