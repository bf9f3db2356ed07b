"""IntakeCoordinator — document uploads, background extraction and confirmation.

Owns one :class:`~interview_store.models.records.ExtractionJob` per session.
Every uploaded file is registered on the job and extracted by a supervised
background task; the upload call returns as soon as the file is stored.

Job lifecycle::

    (no job) ──upload──► processing ──all files reported──► completed
                             ▲  │                               │
                             │  └── none succeeded / timeout ─► failed
                             └──────── new upload ──────────────┘

A failed job never returns to processing.  Candidate aggregation is
additive: results from every file are merged into the job under a
per-session lock, so concurrent extractions never overwrite each other.

Once the applicant confirms candidates, the coordinator synthesises a
prefill answer for the medical-conditions question and an adaptive prompt
that the session orchestrator merges into that question's envelope.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from interview_engine.catalog import QuestionCatalog
from interview_engine.constants import (
    ALLOWED_UPLOAD_TYPES,
    EXTRACTION_TIMEOUT_MESSAGE,
    MEDICAL_CONDITIONS_FIELD,
)
from interview_engine.errors import (
    CandidateLocked,
    CandidateNotFound,
    NoExtractionForSession,
    SessionClosed,
    SessionNotFound,
    UploadRejected,
)
from interview_engine.extraction import ExtractionPipeline
from interview_engine.locks import KeyedLock
from interview_engine.models.envelope import PrefillContext
from interview_engine.models.intake import (
    CandidateEdit,
    ConfirmationResult,
    ExtractionSummary,
    PrefillAnswer,
)
from interview_engine.prompt import PromptManager
from interview_store.models.enums import ExtractionStatus, UploadStatus
from interview_store.models.records import (
    CandidateCondition,
    ConfirmationRecord,
    ConfirmedCondition,
    ExtractionJob,
    ManualCondition,
    UploadRecord,
    utcnow,
)
from interview_store.repository import Repositories

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class IntakeCoordinator:
    """Coordinates uploads, extraction jobs and applicant confirmations.

    Args:
        repos: repository bundle (sessions, uploads, extractions,
            confirmations are used)
        pipeline: the extraction pipeline run for every file
        catalog: used to resolve the medical-conditions question
        prompts: renders the adaptive prompt
        workers: maximum number of concurrent extractions
        file_timeout: per-file extraction budget in seconds
        poll_interval: seconds between polls in :meth:`wait_for_extraction`
        max_poll_attempts: polls before a processing job is declared timed
            out; together with ``poll_interval`` this is the job ceiling
        max_upload_bytes: largest accepted file
        max_files_per_session: uploads accepted per session
        now: clock returning an aware UTC datetime; injectable for tests
    """

    def __init__(
        self,
        repos: Repositories,
        pipeline: ExtractionPipeline,
        catalog: QuestionCatalog,
        prompts: PromptManager | None = None,
        *,
        workers: int = 4,
        file_timeout: float = 60.0,
        poll_interval: float = 2.0,
        max_poll_attempts: int = 30,
        max_upload_bytes: int = 20 * MB,
        max_files_per_session: int = 5,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repos = repos
        self._pipeline = pipeline
        self._catalog = catalog
        self._prompts = prompts or PromptManager()
        self._semaphore = asyncio.Semaphore(workers)
        self._file_timeout = file_timeout
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._max_upload_bytes = max_upload_bytes
        self._max_files = max_files_per_session
        self._now = now
        self._locks = KeyedLock()
        # Strong references so running tasks are not garbage-collected
        self._tasks: set[asyncio.Task] = set()

    @property
    def job_ceiling(self) -> timedelta:
        """How long a job may stay ``processing`` before it is failed."""
        return timedelta(seconds=self._poll_interval * self._max_poll_attempts)

    # ==================================================================
    # Uploads
    # ==================================================================

    async def accept_upload(
        self,
        session_id: str,
        *,
        filename: str,
        data: bytes,
        mime_type: str,
    ) -> UploadRecord:
        """Validate and store an upload, then extract it in the background.

        Returns immediately with the stored :class:`UploadRecord`; the
        extraction outcome is only observable through :meth:`get_summary`.

        Raises :class:`SessionNotFound`, :class:`SessionClosed` or
        :class:`UploadRejected` (type, empty file, size, per-session count).
        """
        session = await self._repos.sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        if session.is_closed:
            raise SessionClosed(session_id, session.status.value)

        mime_type = (mime_type or "").split(";")[0].strip().lower()
        if mime_type not in ALLOWED_UPLOAD_TYPES:
            raise UploadRejected(
                "Invalid file type. Allowed types: PDF, JPEG, PNG, DOCX, TXT"
            )
        if not data:
            raise UploadRejected("Uploaded file is empty")
        if len(data) > self._max_upload_bytes:
            raise UploadRejected(
                f"File exceeds the {self._max_upload_bytes // MB}MB limit",
                status_code=413,
            )

        file_id = f"file-{uuid.uuid4().hex}"
        async with self._locks.hold(session_id):
            job = await self._repos.extractions.get(session_id)
            if job is not None and len(job.file_ids) >= self._max_files:
                raise UploadRejected(
                    f"A maximum of {self._max_files} files can be uploaded per session"
                )
            upload = UploadRecord(
                file_id=file_id,
                session_id=session_id,
                filename=filename or file_id,
                mime_type=mime_type,
                size=len(data),
            )
            await self._repos.uploads.save(upload)
            await self._register_locked(session_id, file_id)

        self._schedule(file_id, session_id, data, mime_type)
        logger.info(
            "Upload accepted: session_id=%s, file_id=%s, mime_type=%s, size=%d",
            session_id, file_id, mime_type, len(data),
        )
        return upload

    async def register_upload(
        self,
        session_id: str,
        file_id: str,
        *,
        data: bytes | None = None,
        mime_type: str = "text/plain",
    ) -> ExtractionJob:
        """Register ``file_id`` on the session's job, creating it if absent.

        A completed job re-enters ``processing``; a failed job stays failed.
        When ``data`` is given, extraction of the file is enqueued in the
        background.  Without it the caller owns the matching
        :meth:`run_extraction` call.  Never blocks on extraction.
        """
        async with self._locks.hold(session_id):
            job = await self._register_locked(session_id, file_id)
        if data is not None:
            self._schedule(file_id, session_id, data, mime_type)
        return job

    async def _register_locked(self, session_id: str, file_id: str) -> ExtractionJob:
        job = await self._repos.extractions.get(session_id)
        if job is None:
            job = ExtractionJob(session_id=session_id, started_at=self._now())
            logger.info("Extraction job created: session_id=%s", session_id)
        if file_id not in job.file_ids:
            job.pending_files.append(file_id)
        if job.status == ExtractionStatus.COMPLETED:
            job.status = ExtractionStatus.PROCESSING
            job.started_at = self._now()
            job.completed_at = None
        return await self._repos.extractions.save(job)

    # ==================================================================
    # Background extraction
    # ==================================================================

    def _schedule(self, file_id: str, session_id: str, data: bytes, mime_type: str) -> None:
        task = asyncio.create_task(
            self.run_extraction(file_id, session_id, data, mime_type),
            name=f"extract:{file_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Extraction task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Extraction task %s crashed", task.get_name(),
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def run_extraction(
        self,
        file_id: str,
        session_id: str,
        data: bytes,
        mime_type: str,
    ) -> None:
        """Extract one file and merge the outcome into the session's job.

        Bounded by the worker semaphore and the per-file timeout.  Pipeline
        errors are recorded on the job and upload, never raised.
        """
        async with self._semaphore:
            await self._set_upload_status(file_id, UploadStatus.SCANNING)
            try:
                candidates = await asyncio.wait_for(
                    self._pipeline.run(file_id, data, mime_type),
                    timeout=self._file_timeout,
                )
            except asyncio.TimeoutError:
                error = f"Extraction timed out after {self._file_timeout:g}s"
                logger.warning("%s: session_id=%s, file_id=%s", error, session_id, file_id)
                await self._report(session_id, file_id, [], error=error)
            except Exception as exc:
                logger.exception(
                    "Extraction failed: session_id=%s, file_id=%s", session_id, file_id,
                )
                await self._report(session_id, file_id, [], error=str(exc) or type(exc).__name__)
            else:
                await self._report(session_id, file_id, candidates)

    async def _report(
        self,
        session_id: str,
        file_id: str,
        candidates: list[CandidateCondition],
        *,
        error: str | None = None,
    ) -> None:
        async with self._locks.hold(session_id):
            job = await self._repos.extractions.get(session_id)
            if job is None:
                # Record expired while the file was processing
                job = ExtractionJob(session_id=session_id, started_at=self._now())
            if file_id in job.pending_files:
                job.pending_files.remove(file_id)

            if error is None:
                job.succeeded_files.append(file_id)
                known = {c.id for c in job.candidates}
                job.candidates.extend(c for c in candidates if c.id not in known)
            else:
                job.failed_files.append(file_id)
                job.error = error

            if job.status == ExtractionStatus.PROCESSING and not job.pending_files:
                job.status = (
                    ExtractionStatus.COMPLETED if job.succeeded_files else ExtractionStatus.FAILED
                )
                job.completed_at = self._now()
                logger.info(
                    "Extraction job %s: session_id=%s, candidates=%d",
                    job.status.value, session_id, len(job.candidates),
                )
            await self._repos.extractions.save(job)

        await self._set_upload_status(
            file_id,
            UploadStatus.FAILED if error else UploadStatus.EXTRACTED,
            error=error,
        )

    async def _set_upload_status(
        self,
        file_id: str,
        status: UploadStatus,
        *,
        error: str | None = None,
    ) -> None:
        upload = await self._repos.uploads.get(file_id)
        if upload is None:
            return
        upload.status = status
        upload.error = error
        if status in (UploadStatus.EXTRACTED, UploadStatus.FAILED):
            upload.extracted_at = self._now()
        await self._repos.uploads.save(upload)

    async def join(self) -> None:
        """Wait for every outstanding extraction task (never cancels them)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ==================================================================
    # Polling
    # ==================================================================

    async def get_summary(self, session_id: str) -> ExtractionSummary:
        """Current extraction state; ``pending`` when nothing was uploaded.

        A job still processing past the ceiling is failed here with the
        timeout message.
        """
        job = await self._repos.extractions.get(session_id)
        if job is None:
            return ExtractionSummary(
                session_id=session_id,
                status=ExtractionStatus.PENDING,
                extraction_status=ExtractionStatus.PENDING,
            )
        if job.status == ExtractionStatus.PROCESSING and self._now() - job.started_at > self.job_ceiling:
            job = await self._expire(session_id) or job
        return self._summarise(job)

    async def wait_for_extraction(self, session_id: str) -> ExtractionSummary:
        """Poll until the job settles or the attempt budget runs out."""
        for _ in range(self._max_poll_attempts):
            summary = await self.get_summary(session_id)
            if summary.extraction_status != ExtractionStatus.PROCESSING:
                return summary
            await asyncio.sleep(self._poll_interval)

        job = await self._expire(session_id)
        if job is None:
            return await self.get_summary(session_id)
        return self._summarise(job)

    async def _expire(self, session_id: str) -> ExtractionJob | None:
        async with self._locks.hold(session_id):
            job = await self._repos.extractions.get(session_id)
            if job is None or job.status != ExtractionStatus.PROCESSING:
                return job
            job.status = ExtractionStatus.FAILED
            job.error = EXTRACTION_TIMEOUT_MESSAGE
            job.completed_at = self._now()
            logger.warning(
                "Extraction job timed out: session_id=%s, pending_files=%d",
                session_id, len(job.pending_files),
            )
            return await self._repos.extractions.save(job)

    @staticmethod
    def _summarise(job: ExtractionJob) -> ExtractionSummary:
        return ExtractionSummary(
            session_id=job.session_id,
            status=job.status,
            extraction_status=job.status,
            candidates=job.candidates,
            completed_at=job.completed_at,
            message=job.error if job.status == ExtractionStatus.FAILED else None,
        )

    # ==================================================================
    # Review & confirmation
    # ==================================================================

    async def edit_candidate(
        self,
        session_id: str,
        candidate_id: str,
        edit: CandidateEdit,
    ) -> CandidateCondition:
        """Apply applicant edits to a candidate that is not yet confirmed."""
        async with self._locks.hold(session_id):
            job = await self._repos.extractions.get(session_id)
            if job is None:
                raise NoExtractionForSession(session_id)
            candidate = job.find_candidate(candidate_id)
            if candidate is None:
                raise CandidateNotFound(session_id, candidate_id)

            confirmation = await self._repos.confirmations.get(session_id)
            if confirmation and any(c.candidate_id == candidate_id for c in confirmation.confirmed):
                raise CandidateLocked(
                    f"Candidate already confirmed: session_id={session_id}, "
                    f"candidate_id={candidate_id}"
                )

            updated = candidate.model_copy(update=edit.model_dump(exclude_none=True))
            job.candidates = [updated if c.id == candidate_id else c for c in job.candidates]
            await self._repos.extractions.save(job)
            return updated

    async def submit_confirmation(
        self,
        session_id: str,
        *,
        confirmed: list[ConfirmedCondition],
        rejected: list[str],
        manual_add: list[ManualCondition],
    ) -> ConfirmationResult:
        """Record the applicant's decisions and build the prefill answer.

        Confirmed ids that match no candidate are dropped before the record
        is stored.  Counts echo what was submitted.  Resubmitting replaces
        the previous record.

        Raises :class:`NoExtractionForSession` if nothing was ever uploaded.
        """
        async with self._locks.hold(session_id):
            job = await self._repos.extractions.get(session_id)
            if job is None:
                raise NoExtractionForSession(session_id)

            resolved: list[ConfirmedCondition] = []
            for item in confirmed:
                candidate = job.find_candidate(item.candidate_id)
                if candidate is None:
                    logger.info(
                        "Ignoring unknown confirmed candidate: session_id=%s, candidate_id=%s",
                        session_id, item.candidate_id,
                    )
                    continue
                resolved.append(item)
                edits = item.model_dump(include={"status", "severity", "onset_date"}, exclude_none=True)
                if edits:
                    updated = candidate.model_copy(update=edits)
                    job.candidates = [updated if c.id == candidate.id else c for c in job.candidates]

            record = ConfirmationRecord(
                session_id=session_id,
                confirmed=resolved,
                rejected=list(rejected),
                manual_add=list(manual_add),
                submitted_at=self._now(),
            )
            await self._repos.extractions.save(job)
            await self._repos.confirmations.save(record)

        prefill = self._build_prefill(job, record)
        logger.info(
            "Confirmation stored: session_id=%s, confirmed=%d, rejected=%d, manual=%d",
            session_id, len(resolved), len(rejected), len(manual_add),
        )
        return ConfirmationResult(
            session_id=session_id,
            confirmed_count=len(confirmed),
            rejected_count=len(rejected),
            prefill=[prefill] if prefill is not None else [],
        )

    def _build_prefill(
        self,
        job: ExtractionJob | None,
        record: ConfirmationRecord,
    ) -> PrefillAnswer | None:
        question = self._catalog.by_field(MEDICAL_CONDITIONS_FIELD)
        if question is None:
            return None

        labels: list[str] = []
        refs: list[str] = []
        for item in record.confirmed:
            candidate = job.find_candidate(item.candidate_id) if job else None
            if candidate is None:
                continue
            labels.append(candidate.canonical.label)
            refs.append(f"{candidate.evidence.doc_id}:{candidate.evidence.page}")
        labels.extend(m.label for m in record.manual_add)

        # One ref per confirmed candidate, even when several share a page.
        return PrefillAnswer(
            question_id=question.id,
            answer=list(dict.fromkeys(label for label in labels if label)),
            evidence_refs=refs,
        )

    async def get_adaptive_prompt(self, session_id: str, question_id: str) -> PrefillContext | None:
        """Adaptive context for ``question_id``, or ``None`` if none applies.

        Only the medical-conditions question is ever adapted, and only once
        a confirmation with at least one label exists.
        """
        question = self._catalog.by_field(MEDICAL_CONDITIONS_FIELD)
        if question is None or question.id != question_id:
            return None
        record = await self._repos.confirmations.get(session_id)
        if record is None:
            return None
        job = await self._repos.extractions.get(session_id)
        prefill = self._build_prefill(job, record)
        if prefill is None or not prefill.answer:
            return None
        return PrefillContext(
            adaptive_prompt=self._prompts.render_adaptive_prompt(prefill.answer),
            confirmed_conditions=list(prefill.answer),
            prefill=prefill,
        )
