"""Idempotency-Key support for mutating endpoints.

Clients on flaky connections retry POSTs.  When a request carries an
``Idempotency-Key`` header, the first successful reply is cached in the
keyed store (namespaced by request path) and returned verbatim for every
repeat, marked with ``Idempotent-Replayed: true``.  Failed requests are
not cached, so a corrected retry with the same key still runs.

The cached record also holds a fingerprint of the request body.  Reusing
a key with a different body is refused with 409 instead of replaying a
reply that belongs to another request.
"""

import hashlib
import json
import logging
from typing import Awaitable, Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from interview_engine.errors import IdempotencyKeyReused
from interview_store.models.records import IdempotencyRecord

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "Idempotent-Replayed"


def fingerprint(payload: BaseModel | None) -> str:
    """Stable sha256 of ``payload`` (key order and whitespace independent)."""
    data = payload.model_dump(mode="json", by_alias=True) if payload is not None else None
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


async def run_idempotent(
    request: Request,
    key: str | None,
    produce: Callable[[], Awaitable[BaseModel]],
    *,
    payload: BaseModel | None = None,
    status_code: int = 200,
) -> JSONResponse:
    """Return the cached reply for ``key`` or run ``produce`` and cache it.

    Raises :class:`IdempotencyKeyReused` when ``key`` was cached for a
    different ``payload``.
    """
    repo = request.app.state.repos.idempotency
    path = request.url.path
    digest = fingerprint(payload)

    if key:
        cached = await repo.lookup(path, key)
        if cached is not None:
            if cached.fingerprint is not None and cached.fingerprint != digest:
                raise IdempotencyKeyReused(
                    f"Idempotency-Key reused with a different body: path={path}, key={key}"
                )
            logger.info("Replaying idempotent reply: path=%s, key=%s", path, key)
            return JSONResponse(
                status_code=cached.status_code,
                content=cached.body,
                headers={REPLAY_HEADER: "true"},
            )

    result = await produce()
    body = result.model_dump(mode="json", by_alias=True)
    if key:
        await repo.remember(
            IdempotencyRecord(
                key=key,
                path=path,
                fingerprint=digest,
                status_code=status_code,
                body=body,
            )
        )
    return JSONResponse(status_code=status_code, content=body)
