"""SessionOrchestrator — the interview state machine.

Drives one session through the question catalog:

  1. ``create_session`` allocates an active session at index 0
  2. ``get_next_question`` returns the question at the current index, or
     the terminal envelope once every question is answered
  3. ``submit_answer`` validates and records an answer, advances the
     pointer and returns the next envelope
  4. ``end_session`` closes the session early

Recording an answer and choosing the next question are separate steps.
After any accepted submission the pointer moves forward past every
question whose field already holds an answer, so a prefilled
medical-conditions answer is never asked again, while a prefill can never
stand in for validation of an answer the applicant actually types.

The terminal decision is computed exactly once, under the session lock;
later calls rebuild the same envelope from the stored fields.

Usage::

    orchestrator = SessionOrchestrator(catalog, repos, intake)
    session = await orchestrator.create_session(tenant_id="acme")
    envelope = await orchestrator.get_next_question(session.id)
    result = await orchestrator.submit_answer(
        session.id, question_id=envelope.question.id, value="John Smith",
    )
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Callable

from interview_engine.catalog import QuestionCatalog
from interview_engine.constants import (
    DEFAULT_TENANT_ID,
    MEDICAL_CONDITIONS_FIELD,
    SENSITIVE_MASK,
)
from interview_engine.decision import decide
from interview_engine.errors import (
    AnswerValidationError,
    InvalidQuestion,
    SessionClosed,
    SessionNotFound,
)
from interview_engine.intake import IntakeCoordinator
from interview_engine.locks import KeyedLock
from interview_engine.models.envelope import AnswerResult, QuestionEnvelope
from interview_engine.prompt import PromptManager
from interview_store.models.enums import AnswerSource, SessionStatus, TranscriptRole
from interview_store.models.records import SessionRecord, TranscriptEntry, utcnow
from interview_store.repository import Repositories

logger = logging.getLogger(__name__)


def _display(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return "" if value is None else str(value)


class SessionOrchestrator:
    """Owns session lifecycle, the question pointer, answers and transcript.

    Args:
        catalog: the loaded question catalog
        repos: repository bundle (sessions and transcripts are used)
        intake: optional intake coordinator; when present, its adaptive
            prompt is merged into the medical-conditions question
        prompts: renders the ``rules`` transcript entry
        today: evaluation-date source for the decision engine; injectable
            for tests
    """

    def __init__(
        self,
        catalog: QuestionCatalog,
        repos: Repositories,
        intake: IntakeCoordinator | None = None,
        prompts: PromptManager | None = None,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._catalog = catalog
        self._repos = repos
        self._intake = intake
        self._prompts = prompts or PromptManager()
        self._today = today
        self._locks = KeyedLock()

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    async def create_session(self, tenant_id: str | None = None) -> SessionRecord:
        """Create an active session and log "Session started"."""
        session = SessionRecord(
            id=f"session-{uuid.uuid4().hex}",
            tenant_id=tenant_id or DEFAULT_TENANT_ID,
        )
        await self._repos.sessions.save(session)
        await self._repos.transcripts.append(
            session.id,
            TranscriptEntry(role=TranscriptRole.SYSTEM, text="Session started"),
        )
        logger.info("Session created: session_id=%s, tenant_id=%s", session.id, session.tenant_id)
        return session

    async def get_session(self, session_id: str) -> SessionRecord:
        return await self._load_session(session_id)

    async def end_session(self, session_id: str) -> SessionRecord:
        """Mark the session completed without computing a decision.

        Idempotent; outstanding extraction tasks are left to finish.
        """
        async with self._locks.hold(session_id):
            session = await self._load_session(session_id)
            if session.status != SessionStatus.COMPLETED:
                session.status = SessionStatus.COMPLETED
                session.progress = 1.0
                session.completed_at = utcnow()
                await self._repos.sessions.save(session)
                logger.info("Session ended early: session_id=%s", session_id)
            return session

    async def get_transcript(self, session_id: str) -> list[TranscriptEntry]:
        await self._load_session(session_id)
        record = await self._repos.transcripts.get(session_id)
        return record.items if record else []

    # ==================================================================
    # Step API
    # ==================================================================

    async def get_next_question(self, session_id: str) -> QuestionEnvelope:
        """Return the current question, or the terminal envelope.

        Reaching the end of the catalog completes the session and records
        the decision; this happens once, subsequent calls are read-only.
        """
        async with self._locks.hold(session_id):
            session = await self._load_session(session_id)
            return await self._envelope(session)

    async def submit_answer(
        self,
        session_id: str,
        *,
        question_id: str,
        value: Any,
        input_mode: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AnswerResult:
        """Validate, record and advance.

        Raises :class:`SessionNotFound`, :class:`SessionClosed`,
        :class:`InvalidQuestion` or :class:`AnswerValidationError`.  A
        failed submission leaves the session untouched.
        """
        async with self._locks.hold(session_id):
            session = await self._load_session(session_id)
            if session.is_closed:
                raise SessionClosed(session_id, session.status.value)

            if meta and meta.get("source") == AnswerSource.PREFILL.value and isinstance(value, list):
                question, stored = self._accept_prefill(session, question_id, value)
                source = AnswerSource.PREFILL
            else:
                question = self._catalog.at(session.current_question_index)
                if question is None or question.id != question_id:
                    raise InvalidQuestion(
                        f"Invalid question ID: expected "
                        f"{question.id if question else None}, got {question_id}"
                    )
                stored = self._catalog.validate_answer(question, value)
                source = AnswerSource.USER

            # --- Record ---
            session.answers[question.field] = stored
            session.answer_sources[question.field] = source

            # --- Navigate ---
            self._catch_up(session)
            len_catalog = len(self._catalog)
            if session.current_question_index < len_catalog:
                session.progress = session.current_question_index / (len_catalog + 1)
            await self._repos.sessions.save(session)

            entry_meta = dict(meta or {})
            if input_mode:
                entry_meta.setdefault("inputMode", input_mode)
            sensitive = question.constraints.sensitive
            entries = [
                TranscriptEntry(
                    role=TranscriptRole.USER,
                    text=SENSITIVE_MASK if sensitive else _display(stored),
                    redacted=sensitive,
                    meta=entry_meta or None,
                )
            ]
            if session.current_question_index < len_catalog:
                upcoming = await self._envelope(session)
                entries.append(
                    TranscriptEntry(role=TranscriptRole.ASSISTANT, text=upcoming.question.prompt)
                )
                await self._repos.transcripts.append(session_id, *entries)
            else:
                await self._repos.transcripts.append(session_id, *entries)
                upcoming = await self._envelope(session)

            logger.info(
                "Answer accepted: session_id=%s, question_id=%s, source=%s, index=%d",
                session_id, question.id, source.value, session.current_question_index,
            )
            return AnswerResult(accepted=True, next_question=upcoming)

    # ==================================================================
    # Internal helpers
    # ==================================================================

    async def _load_session(self, session_id: str) -> SessionRecord:
        session = await self._repos.sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def _accept_prefill(self, session: SessionRecord, question_id: str, value: list):
        """Validate a prefill submission; returns (question, stored value)."""
        question = self._catalog.by_field(MEDICAL_CONDITIONS_FIELD)
        if question is None or question.id != question_id:
            raise InvalidQuestion(f"Prefill is not supported for question {question_id}")
        if question.id in session.applied_prefill:
            raise InvalidQuestion(f"Prefill already applied for question {question_id}")
        if session.answer_sources.get(question.field) == AnswerSource.USER:
            raise InvalidQuestion(f"Question {question_id} was already answered")

        labels = [v.strip() for v in value if isinstance(v, str) and v.strip()]
        if not labels or len(labels) != len(value):
            raise AnswerValidationError(question.id, ["Prefill must be a non-empty list of conditions"])
        session.applied_prefill.append(question.id)
        return question, list(dict.fromkeys(labels))

    def _catch_up(self, session: SessionRecord) -> None:
        """Advance the pointer past every question whose field is answered."""
        index = session.current_question_index
        while index < len(self._catalog) and self._catalog.at(index).field in session.answers:
            index += 1
        session.current_question_index = index

    async def _envelope(self, session: SessionRecord) -> QuestionEnvelope:
        """Build the envelope for the session's current position.

        Caller must hold the session lock; may persist the terminal state.
        """
        if session.is_closed:
            return self._terminal_envelope(session)

        question = self._catalog.at(session.current_question_index)
        if question is None:
            await self._complete(session)
            return self._terminal_envelope(session)

        progress = session.current_question_index / (len(self._catalog) + 1)
        context = None
        if self._intake is not None:
            context = await self._intake.get_adaptive_prompt(session.id, question.id)
        if context is not None:
            question = question.model_copy(update={"prompt": context.adaptive_prompt})
        return QuestionEnvelope(
            question=question,
            is_terminal=False,
            progress=progress,
            prefill_context=context,
        )

    async def _complete(self, session: SessionRecord) -> None:
        result = decide(session.answers, today=self._today())
        session.status = SessionStatus.COMPLETED
        session.decision = result.decision
        session.decision_reason = result.reason
        session.risk_score = result.risk_score
        session.progress = 1.0
        session.completed_at = utcnow()
        await self._repos.sessions.save(session)
        await self._repos.transcripts.append(
            session.id,
            TranscriptEntry(
                role=TranscriptRole.RULES,
                text=self._prompts.render_decision_entry(result.decision.value, result.reason),
            ),
        )
        logger.info(
            "Session completed: session_id=%s, decision=%s, risk_score=%d",
            session.id, result.decision.value, result.risk_score,
        )

    @staticmethod
    def _terminal_envelope(session: SessionRecord) -> QuestionEnvelope:
        return QuestionEnvelope(
            question=None,
            is_terminal=True,
            progress=1.0,
            decision=session.decision,
            decision_reason=session.decision_reason,
        )
