"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads the catalog and dictionary, builds the
    keyed store, repositories, extraction pipeline, intake coordinator and
    session orchestrator once, and drains extraction tasks on shutdown
  - CORS middleware
  - Global exception handlers (SDK errors → 404/400/409/422)
  - All API routes mounted under ``/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``interview-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from interview_engine.catalog import QuestionCatalog
from interview_engine.dictionary import ConditionDictionary
from interview_engine.errors import InterviewError
from interview_engine.extraction import ExtractionPipeline
from interview_engine.intake import IntakeCoordinator
from interview_engine.orchestrator import SessionOrchestrator
from interview_engine.prompt import PromptManager
from interview_store.repository import build_repositories
from interview_store.store import InMemoryKeyValueStore, KeyValueStore

from interview_server.config import ServerSettings, load_settings
from interview_server.errors import (
    generic_error_handler,
    interview_error_handler,
    key_error_handler,
    value_error_handler,
)
from interview_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Store selection
# ------------------------------------------------------------------

async def build_store(settings: ServerSettings) -> KeyValueStore:
    """Instantiate the configured keyed store backend."""
    if settings.store_backend == "memory":
        return InMemoryKeyValueStore()
    if settings.store_backend == "sql":
        # Lazy imports so the memory backend never needs asyncpg
        from interview_store.engine import create_schema
        from interview_store.sql_store import SqlKeyValueStore

        if settings.create_schema:
            await create_schema()
        return SqlKeyValueStore()
    raise ValueError(f"Unsupported store backend: {settings.store_backend!r}")


# ------------------------------------------------------------------
# Lifespan — runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Load the question catalog and condition dictionary from YAML
      2. Build the keyed store and repositories
      3. Build the pipeline, intake coordinator and orchestrator
      4. Stash them on ``app.state`` for dependency injection

    Shutdown:
      1. Wait for in-flight extraction tasks
      2. Close the store (disposes the SQL connection pool)
    """
    settings: ServerSettings = app.state.settings

    # --- Reference data ---
    catalog = QuestionCatalog(settings.catalog_dir)
    catalog.load()
    dictionary = ConditionDictionary(settings.catalog_dir)
    dictionary.load()

    # --- Persistence ---
    store = await build_store(settings)
    repos = build_repositories(
        store,
        ttl_seconds=settings.record_ttl_seconds,
        idempotency_ttl_seconds=settings.idempotency_ttl_seconds,
    )
    logger.info("Store ready: backend=%s", settings.store_backend)

    # --- SDK ---
    prompts = PromptManager()
    pipeline = ExtractionPipeline(
        dictionary,
        fallback_enabled=settings.fallback_text_enabled,
        unmatched_policy=settings.unmatched_term_policy,
    )
    intake = IntakeCoordinator(
        repos,
        pipeline,
        catalog,
        prompts,
        workers=settings.extraction_workers,
        file_timeout=settings.extraction_file_timeout,
        poll_interval=settings.poll_interval,
        max_poll_attempts=settings.max_poll_attempts,
        max_upload_bytes=settings.max_upload_bytes,
        max_files_per_session=settings.max_files_per_session,
    )
    orchestrator = SessionOrchestrator(catalog, repos, intake, prompts)

    app.state.catalog = catalog
    app.state.dictionary = dictionary
    app.state.repos = repos
    app.state.intake = intake
    app.state.orchestrator = orchestrator

    yield

    # --- Shutdown ---
    await intake.join()
    await store.close()
    logger.info("Store closed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Adaptive Interview API",
        description="Adaptive life-insurance interview with medical document intake",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings so the lifespan handler can read them
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers (most specific first) ---
    app.add_exception_handler(InterviewError, interview_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside the /v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies the store answers."""
        try:
            await app.state.repos.store.ping()
            return {"status": "ok", "store": settings.store_backend}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": "store unavailable"}

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn interview_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``interview-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "interview_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
