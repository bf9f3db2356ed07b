"""FastAPI dependency injection — SDK singletons stashed on ``app.state``.

The lifespan handler builds the catalog, dictionary, repositories,
coordinator and orchestrator once; routes receive them through these
getters so tests can swap any of them on a fresh app.
"""

import hmac

from fastapi import Header, HTTPException, Request

from interview_engine.catalog import QuestionCatalog
from interview_engine.dictionary import ConditionDictionary
from interview_engine.intake import IntakeCoordinator
from interview_engine.orchestrator import SessionOrchestrator
from interview_store.repository import Repositories

from interview_server.config import ServerSettings


def get_settings(request: Request) -> ServerSettings:
    return request.app.state.settings


def get_orchestrator(request: Request) -> SessionOrchestrator:
    return request.app.state.orchestrator


def get_intake(request: Request) -> IntakeCoordinator:
    return request.app.state.intake


def get_dictionary(request: Request) -> ConditionDictionary:
    return request.app.state.dictionary


def get_catalog(request: Request) -> QuestionCatalog:
    return request.app.state.catalog


def get_repositories(request: Request) -> Repositories:
    return request.app.state.repos


# ------------------------------------------------------------------
# Admin auth
# ------------------------------------------------------------------

async def require_admin_key(
    request: Request,
    x_admin_key: str | None = Header(None, alias="X-Admin-Key"),
) -> str:
    """Validate ``X-Admin-Key`` against the configured ``ADMIN_API_KEY``.

    Raises 403 if admin endpoints are disabled or the key is wrong, 401 if
    the header is missing.
    """
    expected: str | None = request.app.state.settings.admin_api_key
    if not expected:
        raise HTTPException(
            status_code=403,
            detail="Admin endpoints are disabled (ADMIN_API_KEY not configured)",
        )
    if not x_admin_key:
        raise HTTPException(status_code=401, detail="X-Admin-Key header is required")
    # Constant-time comparison to prevent timing side-channels.
    if not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=403, detail="Invalid admin key")
    return x_admin_key
