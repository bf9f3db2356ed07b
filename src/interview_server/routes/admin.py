"""Admin endpoints — maintenance operations on the keyed store.

Protected by the ``ADMIN_API_KEY`` setting.  Every request must include an
``X-Admin-Key`` header whose value matches the configured key.  Returns
401 if missing, 403 if wrong or admin endpoints are disabled.
"""

from fastapi import APIRouter, Depends

from interview_store.models.base import CamelModel
from interview_store.repository import Repositories

from interview_server.dependencies import get_repositories, require_admin_key

router = APIRouter(prefix="/admin", tags=["admin"])


class CleanupResult(CamelModel):
    """Response body for cleanup operations."""
    affected_rows: int
    action: str


@router.post("/cleanup/expired")
async def cleanup_expired(
    repos: Repositories = Depends(get_repositories),
    _admin: str = Depends(require_admin_key),
) -> CleanupResult:
    """Physically delete every record whose TTL has elapsed."""
    affected = await repos.store.purge_expired()
    return CleanupResult(affected_rows=affected, action="purge_expired")
