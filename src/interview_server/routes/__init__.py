"""Route registration — mounts all routers under ``/v1``."""

from fastapi import FastAPI

from interview_server.routes.admin import router as admin_router
from interview_server.routes.intake import router as intake_router
from interview_server.routes.reference import router as reference_router
from interview_server.routes.sessions import router as sessions_router

API_PREFIX = "/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(sessions_router, prefix=API_PREFIX)
    app.include_router(intake_router, prefix=API_PREFIX)
    app.include_router(reference_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)
