"""Server configuration — reads settings from environment variables.

All settings have sensible defaults for local development (in-memory
store, no admin key).  In production the values are typically overridden
via env vars or a ``.env`` file.
"""

import os
from dataclasses import dataclass, field

from interview_engine.constants import DEFAULT_TENANT_ID, UNMATCHED_POLICIES

# Module-level constants read at import time so FastAPI Query() defaults
# can reference them (Query defaults must be static at decoration time).
MAX_SEARCH_LIMIT = int(os.getenv("MAX_SEARCH_LIMIT", "25"))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS — comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    # Persistence: "memory" or "sql"
    store_backend: str = "memory"
    # Lifetime of every stored record in seconds; 0 means no expiry
    record_ttl_seconds: int = 0
    # Lifetime of cached Idempotency-Key replies
    idempotency_ttl_seconds: int = 24 * 60 * 60
    # Create the kv_records table at startup (sql backend, dev only)
    create_schema: bool = False

    # Catalog directory holding questions.yaml / conditions.yaml
    # (None → the data/ directory shipped with interview_engine)
    catalog_dir: str | None = None

    # Admin API key — shared secret for admin endpoints (None = disabled)
    admin_api_key: str | None = None

    default_tenant_id: str = DEFAULT_TENANT_ID

    # Uploads
    max_upload_bytes: int = 20 * 1024 * 1024
    max_files_per_session: int = 5

    # Extraction
    extraction_workers: int = 4
    extraction_file_timeout: float = 60.0
    poll_interval: float = 2.0
    max_poll_attempts: int = 30
    fallback_text_enabled: bool = True
    unmatched_term_policy: str = "default"


def load_settings() -> ServerSettings:
    """Build settings from environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    policy = os.getenv("UNMATCHED_TERM_POLICY", "default").strip().lower()
    if policy not in UNMATCHED_POLICIES:
        raise ValueError(
            f"UNMATCHED_TERM_POLICY must be one of {', '.join(UNMATCHED_POLICIES)}; got {policy!r}"
        )

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        store_backend=os.getenv("STORE_BACKEND", "memory").strip().lower(),
        record_ttl_seconds=int(os.getenv("RECORD_TTL_SECONDS", "0")),
        idempotency_ttl_seconds=int(os.getenv("IDEMPOTENCY_TTL_SECONDS", str(24 * 60 * 60))),
        create_schema=_env_bool("STORE_CREATE_SCHEMA", False),
        catalog_dir=os.getenv("CATALOG_DIR") or None,
        admin_api_key=os.getenv("ADMIN_API_KEY") or None,
        default_tenant_id=os.getenv("DEFAULT_TENANT_ID", DEFAULT_TENANT_ID),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(20 * 1024 * 1024))),
        max_files_per_session=int(os.getenv("MAX_FILES_PER_SESSION", "5")),
        extraction_workers=int(os.getenv("EXTRACTION_WORKERS", "4")),
        extraction_file_timeout=float(os.getenv("EXTRACTION_FILE_TIMEOUT_SECONDS", "60")),
        poll_interval=float(os.getenv("EXTRACTION_POLL_INTERVAL_SECONDS", "2")),
        max_poll_attempts=int(os.getenv("EXTRACTION_MAX_POLL_ATTEMPTS", "30")),
        fallback_text_enabled=_env_bool("EXTRACTION_FALLBACK_ENABLED", True),
        unmatched_term_policy=policy,
    )
