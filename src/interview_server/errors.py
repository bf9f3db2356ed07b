"""Global exception handlers — map SDK exceptions to HTTP responses.

The SDK raises :class:`~interview_engine.errors.InterviewError` subclasses
that declare their own status code and client-safe message, so routes stay
focused on the happy path.  Validation errors carry per-field messages and
use the structured body clients re-prompt from::

    {"error": {"code": "VALIDATION_ERROR",
               "message": "This field is required",
               "fieldErrors": [{"questionId": "q-001", "message": "..."}]}}

Any other ``ValueError`` is treated as a bad request, ``KeyError`` as a
missing resource, and everything else as a 500.  Internal detail (ids,
stack traces) is logged server-side and never echoed.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from interview_engine.errors import AnswerValidationError, InterviewError

logger = logging.getLogger(__name__)


def _error_body(code: str, message: str, field_errors: list[dict] | None = None) -> dict:
    error: dict = {"code": code, "message": message}
    if field_errors is not None:
        error["fieldErrors"] = field_errors
    return {"error": error}


async def interview_error_handler(request: Request, exc: InterviewError) -> JSONResponse:
    """Map an SDK error to its declared status and public message."""
    level = logging.INFO if exc.status_code == 422 else logging.WARNING
    logger.log(level, "%s [%d] at %s: %s", type(exc).__name__, exc.status_code, request.url, exc)

    field_errors = exc.field_errors if isinstance(exc, AnswerValidationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.public_message, field_errors),
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Unclassified ``ValueError`` → 400 with a generic message."""
    logger.warning("ValueError [400] at %s: %s", request.url, exc)
    return JSONResponse(status_code=400, content=_error_body("bad_request", "Invalid request"))


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    logger.warning("KeyError at %s: %s", request.url, exc)
    return JSONResponse(status_code=404, content=_error_body("not_found", "Resource not found"))


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content=_error_body("internal_error", "Internal server error"),
    )
