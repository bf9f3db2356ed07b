"""Session endpoints — create, inspect, step through and end an interview."""

from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Request
from fastapi.responses import JSONResponse

from interview_engine.models.envelope import (
    AnswerResult,
    EndSessionResult,
    QuestionEnvelope,
    TranscriptView,
)
from interview_engine.orchestrator import SessionOrchestrator
from interview_store.models.base import CamelModel
from interview_store.models.records import SessionRecord

from interview_server.config import ServerSettings
from interview_server.dependencies import get_orchestrator, get_settings
from interview_server.idempotency import IDEMPOTENCY_HEADER, run_idempotent

router = APIRouter(tags=["sessions"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class CreateSessionRequest(CamelModel):
    """Body for POST /sessions."""
    tenant_id: str | None = None


class AnswerRequest(CamelModel):
    """Body for POST /sessions/{id}/answers."""
    question_id: str
    answer: Any = None
    input_mode: str | None = None
    meta: dict[str, Any] | None = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/sessions", status_code=201)
async def create_session(
    body: CreateSessionRequest | None = Body(None),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
    settings: ServerSettings = Depends(get_settings),
) -> SessionRecord:
    """Start a new interview.  The tenant defaults to ``DEFAULT_TENANT_ID``."""
    tenant_id = (body.tenant_id if body else None) or settings.default_tenant_id
    return await orchestrator.create_session(tenant_id)


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> SessionRecord:
    return await orchestrator.get_session(session_id)


@router.get("/sessions/{session_id}/next-question")
async def get_next_question(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> QuestionEnvelope:
    """Current question, or the terminal envelope with the decision."""
    return await orchestrator.get_next_question(session_id)


@router.post("/sessions/{session_id}/answers", response_model=AnswerResult)
async def submit_answer(
    session_id: str,
    body: AnswerRequest,
    request: Request,
    idempotency_key: str | None = Header(None, alias=IDEMPOTENCY_HEADER),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Submit the answer to the current question.

    422 on validation failure (session not advanced), 400 for a question
    that is not the current one, 409 once the session is closed.
    """
    return await run_idempotent(
        request,
        idempotency_key,
        lambda: orchestrator.submit_answer(
            session_id,
            question_id=body.question_id,
            value=body.answer,
            input_mode=body.input_mode,
            meta=body.meta,
        ),
        payload=body,
    )


@router.delete("/sessions/{session_id}")
async def end_session(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> EndSessionResult:
    """Close the session without a decision.  Idempotent."""
    session = await orchestrator.end_session(session_id)
    return EndSessionResult(id=session.id, status=session.status.value)


@router.get("/sessions/{session_id}/transcript")
async def get_transcript(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> TranscriptView:
    items = await orchestrator.get_transcript(session_id)
    return TranscriptView(session_id=session_id, items=items)
