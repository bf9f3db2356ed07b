"""Document-intake endpoints — upload, poll, review and confirm.

Uploads return immediately; extraction runs in the background and is
observed through ``GET /intake/summary`` (client-driven polling) or
``GET /intake/summary/wait`` (the server polls on the client's behalf up
to the configured ceiling).
"""

from fastapi import APIRouter, Depends, File, Form, Header, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from interview_engine.errors import MissingParameter, UploadRejected
from interview_engine.intake import IntakeCoordinator
from interview_engine.models.intake import (
    CandidateEdit,
    ConfirmationResult,
    ConfirmationSubmission,
    ExtractionSummary,
    UploadAccepted,
)
from interview_store.models.records import CandidateCondition

from interview_server.dependencies import get_intake
from interview_server.idempotency import IDEMPOTENCY_HEADER, run_idempotent

router = APIRouter(prefix="/intake", tags=["intake"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class CandidateEditRequest(CandidateEdit):
    """Body for PATCH /intake/candidates/{candidate_id}."""
    session_id: str


def _require_session_id(session_id: str | None) -> str:
    if not session_id:
        raise MissingParameter("Session ID")
    return session_id


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/files")
async def upload_file(
    file: UploadFile | None = File(None),
    session_id: str | None = Form(None, alias="sessionId"),
    intake: IntakeCoordinator = Depends(get_intake),
) -> UploadAccepted:
    """Accept a medical document and start extraction in the background."""
    if file is None:
        raise UploadRejected("No file uploaded")
    session_id = _require_session_id(session_id)

    data = await file.read()
    upload = await intake.accept_upload(
        session_id,
        filename=file.filename or "",
        data=data,
        mime_type=file.content_type or "",
    )
    return UploadAccepted(file_id=upload.file_id, status=upload.status.value)


@router.get("/summary")
async def get_summary(
    session_id: str | None = Query(None, alias="sessionId"),
    intake: IntakeCoordinator = Depends(get_intake),
) -> ExtractionSummary:
    """Extraction status and candidates; ``pending`` before any upload."""
    return await intake.get_summary(_require_session_id(session_id))


@router.get("/summary/wait")
async def wait_for_summary(
    session_id: str | None = Query(None, alias="sessionId"),
    intake: IntakeCoordinator = Depends(get_intake),
) -> ExtractionSummary:
    """Block until extraction settles or the polling ceiling is reached."""
    return await intake.wait_for_extraction(_require_session_id(session_id))


@router.patch("/candidates/{candidate_id}")
async def edit_candidate(
    candidate_id: str,
    body: CandidateEditRequest,
    intake: IntakeCoordinator = Depends(get_intake),
) -> CandidateCondition:
    """Edit status, severity or onset of an unconfirmed candidate."""
    edit = CandidateEdit(status=body.status, severity=body.severity, onset_date=body.onset_date)
    return await intake.edit_candidate(body.session_id, candidate_id, edit)


@router.post("/confirmations", response_model=ConfirmationResult)
async def submit_confirmations(
    body: ConfirmationSubmission,
    request: Request,
    idempotency_key: str | None = Header(None, alias=IDEMPOTENCY_HEADER),
    intake: IntakeCoordinator = Depends(get_intake),
) -> JSONResponse:
    """Record confirmed / rejected / added conditions and return prefill."""
    return await run_idempotent(
        request,
        idempotency_key,
        lambda: intake.submit_confirmation(
            _require_session_id(body.session_id),
            confirmed=body.confirmed,
            rejected=body.rejected,
            manual_add=body.manual_add,
        ),
        payload=body,
    )
