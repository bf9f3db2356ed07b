"""SessionOrchestrator tests — lifecycle, step API, prefill and transcript.

All tests run against the in-memory store and the packaged catalog with
the evaluation date pinned to FIXED_TODAY.

Scenarios:
  1. create → next question → answer all 10 → terminal ACCEPT
  2. Terminal envelope is idempotent; the decision is logged once
  3. Validation failure leaves the session untouched
  4. Out-of-order answers raise InvalidQuestion
  5. end_session is idempotent and closes the session to answers
  6. Sensitive answers are masked in the transcript
  7. Prefilled medical conditions are skipped when the pointer reaches them
  8. Prefill rules (only once, only the conditions question, not after a
     typed answer, non-empty list)
  9. Adaptive prompt replaces the conditions question text
"""

import pytest

from interview_engine.constants import SENSITIVE_MASK
from interview_engine.errors import (
    AnswerValidationError,
    InvalidQuestion,
    SessionClosed,
    SessionNotFound,
)
from interview_engine.extraction import ExtractionPipeline
from interview_engine.intake import IntakeCoordinator
from interview_engine.orchestrator import SessionOrchestrator
from interview_store.models.enums import (
    AnswerSource,
    Decision,
    ExtractionStatus,
    SessionStatus,
    TranscriptRole,
)
from interview_store.models.records import (
    CandidateCondition,
    CanonicalCondition,
    ConfirmedCondition,
    Evidence,
    ExtractionJob,
)

from conftest import FIXED_TODAY, LOW_RISK_ANSWERS

PREFILL_META = {"source": "prefill"}


# =====================================================================
# Fixtures & helpers
# =====================================================================


@pytest.fixture
def orchestrator(catalog, repos, prompts):
    return SessionOrchestrator(catalog, repos, prompts=prompts, today=lambda: FIXED_TODAY)


async def _answer(orchestrator, session_id, answers):
    """Submit (question_id, value) pairs in order; return the last result."""
    result = None
    for question_id, value in answers:
        result = await orchestrator.submit_answer(session_id, question_id=question_id, value=value)
    return result


def _answers_for(*question_ids):
    wanted = set(question_ids)
    return [(qid, value) for qid, value in LOW_RISK_ANSWERS if qid in wanted]


# =====================================================================
# Lifecycle and happy path
# =====================================================================


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_create_session(self, orchestrator):
        session = await orchestrator.create_session()
        assert session.id.startswith("session-")
        assert session.tenant_id == "demo-tenant"
        assert session.status == SessionStatus.ACTIVE

        transcript = await orchestrator.get_transcript(session.id)
        assert [(e.role, e.text) for e in transcript] == [(TranscriptRole.SYSTEM, "Session started")]

    @pytest.mark.asyncio
    async def test_tenant_id_kept(self, orchestrator):
        session = await orchestrator.create_session(tenant_id="acme")
        assert (await orchestrator.get_session(session.id)).tenant_id == "acme"

    @pytest.mark.asyncio
    async def test_first_question(self, orchestrator):
        session = await orchestrator.create_session()
        envelope = await orchestrator.get_next_question(session.id)
        assert envelope.question.id == "q-001"
        assert envelope.is_terminal is False
        assert envelope.progress == 0.0
        assert envelope.prefill_context is None

    @pytest.mark.asyncio
    async def test_unknown_session(self, orchestrator):
        with pytest.raises(SessionNotFound):
            await orchestrator.get_next_question("session-missing")
        with pytest.raises(SessionNotFound):
            await orchestrator.submit_answer("session-missing", question_id="q-001", value="x")
        with pytest.raises(SessionNotFound):
            await orchestrator.get_transcript("session-missing")

    @pytest.mark.asyncio
    async def test_low_risk_applicant_accepted(self, orchestrator):
        session = await orchestrator.create_session()
        progress = []
        for question_id, value in LOW_RISK_ANSWERS:
            result = await orchestrator.submit_answer(session.id, question_id=question_id, value=value)
            assert result.accepted is True
            progress.append(result.next_question.progress)

        assert progress == sorted(progress), "Progress never decreases"
        assert progress[0] == pytest.approx(1 / 11)

        envelope = result.next_question
        assert envelope.is_terminal is True
        assert envelope.question is None
        assert envelope.progress == 1.0
        assert envelope.decision == Decision.ACCEPT
        assert envelope.decision_reason == "Low risk profile"

        stored = await orchestrator.get_session(session.id)
        assert stored.status == SessionStatus.COMPLETED
        assert stored.risk_score == 15
        assert stored.completed_at is not None
        assert stored.answers["height"] == 175

    @pytest.mark.asyncio
    async def test_terminal_is_idempotent(self, orchestrator):
        session = await orchestrator.create_session()
        await _answer(orchestrator, session.id, LOW_RISK_ANSWERS)

        first = await orchestrator.get_next_question(session.id)
        second = await orchestrator.get_next_question(session.id)
        assert first == second

        transcript = await orchestrator.get_transcript(session.id)
        rules = [e for e in transcript if e.role == TranscriptRole.RULES]
        assert len(rules) == 1, f"Decision logged {len(rules)} times"
        assert rules[0].text == "Decision: ACCEPT. Reason: Low risk profile"
        assert transcript[-1].role == TranscriptRole.RULES

    @pytest.mark.asyncio
    async def test_answers_after_completion_rejected(self, orchestrator):
        session = await orchestrator.create_session()
        await _answer(orchestrator, session.id, LOW_RISK_ANSWERS)
        with pytest.raises(SessionClosed):
            await orchestrator.submit_answer(session.id, question_id="q-010", value="Other")


# =====================================================================
# Validation and ordering
# =====================================================================


class TestSubmitAnswer:

    @pytest.mark.asyncio
    async def test_validation_failure_does_not_advance(self, orchestrator):
        session = await orchestrator.create_session()
        await _answer(orchestrator, session.id, _answers_for("q-001", "q-002", "q-003"))
        before = await orchestrator.get_transcript(session.id)

        with pytest.raises(AnswerValidationError) as exc_info:
            await orchestrator.submit_answer(session.id, question_id="q-004", value=99)
        assert exc_info.value.field_errors == [
            {"questionId": "q-004", "message": "Must be at least 100"}
        ]

        stored = await orchestrator.get_session(session.id)
        assert stored.current_question_index == 3
        assert "height" not in stored.answers
        assert len(await orchestrator.get_transcript(session.id)) == len(before)
        assert (await orchestrator.get_next_question(session.id)).question.id == "q-004"

    @pytest.mark.asyncio
    async def test_out_of_order_answer(self, orchestrator):
        session = await orchestrator.create_session()
        with pytest.raises(InvalidQuestion):
            await orchestrator.submit_answer(session.id, question_id="q-002", value="01/01/1990")

    @pytest.mark.asyncio
    async def test_unknown_question(self, orchestrator):
        session = await orchestrator.create_session()
        with pytest.raises(InvalidQuestion):
            await orchestrator.submit_answer(session.id, question_id="q-999", value="x")

    @pytest.mark.asyncio
    async def test_input_mode_recorded(self, orchestrator):
        session = await orchestrator.create_session()
        await orchestrator.submit_answer(
            session.id, question_id="q-001", value="Jane Doe", input_mode="voice",
        )
        transcript = await orchestrator.get_transcript(session.id)
        assert transcript[1].meta == {"inputMode": "voice"}


# =====================================================================
# Transcript
# =====================================================================


class TestTranscript:

    @pytest.mark.asyncio
    async def test_sensitive_answers_masked(self, orchestrator):
        session = await orchestrator.create_session()
        await _answer(orchestrator, session.id, _answers_for("q-001", "q-002", "q-003"))

        user_entries = [
            e for e in await orchestrator.get_transcript(session.id)
            if e.role == TranscriptRole.USER
        ]
        assert [e.text for e in user_entries] == [SENSITIVE_MASK, SENSITIVE_MASK, "Male"]
        assert [e.redacted for e in user_entries] == [True, True, False]

        stored = await orchestrator.get_session(session.id)
        assert stored.answers["fullName"] == "John Michael Smith", "Masking is transcript-only"

    @pytest.mark.asyncio
    async def test_assistant_entry_carries_next_prompt(self, orchestrator, catalog):
        session = await orchestrator.create_session()
        await orchestrator.submit_answer(session.id, question_id="q-001", value="Jane Doe")
        transcript = await orchestrator.get_transcript(session.id)
        assert [e.role for e in transcript] == [
            TranscriptRole.SYSTEM, TranscriptRole.USER, TranscriptRole.ASSISTANT,
        ]
        assert transcript[2].text == catalog.get("q-002").prompt


# =====================================================================
# Ending a session early
# =====================================================================


class TestEndSession:

    @pytest.mark.asyncio
    async def test_end_is_idempotent(self, orchestrator):
        session = await orchestrator.create_session()
        first = await orchestrator.end_session(session.id)
        second = await orchestrator.end_session(session.id)
        assert first.status == SessionStatus.COMPLETED
        assert second.completed_at == first.completed_at
        assert second.progress == 1.0

    @pytest.mark.asyncio
    async def test_ended_session_is_closed(self, orchestrator):
        session = await orchestrator.create_session()
        await orchestrator.end_session(session.id)

        with pytest.raises(SessionClosed):
            await orchestrator.submit_answer(session.id, question_id="q-001", value="Jane Doe")

        envelope = await orchestrator.get_next_question(session.id)
        assert envelope.is_terminal is True
        assert envelope.decision is None, "Ending early never computes a decision"


# =====================================================================
# Prefill
# =====================================================================


class TestPrefill:

    @pytest.mark.asyncio
    async def test_prefilled_question_skipped(self, orchestrator):
        session = await orchestrator.create_session()
        await _answer(orchestrator, session.id, _answers_for("q-001", "q-002"))

        result = await orchestrator.submit_answer(
            session.id,
            question_id="q-007",
            value=["Asthma", "Hypertension"],
            meta=PREFILL_META,
        )
        assert result.next_question.question.id == "q-003", "Prefill does not skip ahead"

        stored = await orchestrator.get_session(session.id)
        assert stored.answers["medicalConditions"] == ["Asthma", "Hypertension"]
        assert stored.answer_sources["medicalConditions"] == AnswerSource.PREFILL

        result = await _answer(
            orchestrator, session.id, _answers_for("q-003", "q-004", "q-005", "q-006"),
        )
        assert result.next_question.question.id == "q-008"
        assert result.next_question.progress == pytest.approx(7 / 11)

        result = await _answer(orchestrator, session.id, _answers_for("q-008", "q-009", "q-010"))
        assert result.next_question.is_terminal is True
        assert result.next_question.decision == Decision.REFER, "Conditions add 30 → 45"

    @pytest.mark.asyncio
    async def test_prefill_only_once(self, orchestrator):
        session = await orchestrator.create_session()
        await orchestrator.submit_answer(
            session.id, question_id="q-007", value=["Asthma"], meta=PREFILL_META,
        )
        with pytest.raises(InvalidQuestion):
            await orchestrator.submit_answer(
                session.id, question_id="q-007", value=["Stroke"], meta=PREFILL_META,
            )

    @pytest.mark.asyncio
    async def test_prefill_only_for_conditions_question(self, orchestrator):
        session = await orchestrator.create_session()
        with pytest.raises(InvalidQuestion):
            await orchestrator.submit_answer(
                session.id, question_id="q-006", value=["Yes"], meta=PREFILL_META,
            )

    @pytest.mark.asyncio
    async def test_prefill_after_typed_answer_rejected(self, orchestrator):
        session = await orchestrator.create_session()
        await _answer(orchestrator, session.id, LOW_RISK_ANSWERS[:7])
        stored = await orchestrator.get_session(session.id)
        assert stored.answer_sources["medicalConditions"] == AnswerSource.USER

        with pytest.raises(InvalidQuestion):
            await orchestrator.submit_answer(
                session.id, question_id="q-007", value=["Asthma"], meta=PREFILL_META,
            )

    @pytest.mark.asyncio
    async def test_empty_prefill_rejected(self, orchestrator):
        session = await orchestrator.create_session()
        with pytest.raises(AnswerValidationError):
            await orchestrator.submit_answer(
                session.id, question_id="q-007", value=[], meta=PREFILL_META,
            )
        stored = await orchestrator.get_session(session.id)
        assert stored.applied_prefill == []


# =====================================================================
# Adaptive prompt
# =====================================================================


@pytest.mark.asyncio
async def test_adaptive_prompt_applied(catalog, repos, prompts, dictionary):
    intake = IntakeCoordinator(repos, ExtractionPipeline(dictionary), catalog, prompts)
    orchestrator = SessionOrchestrator(
        catalog, repos, intake, prompts, today=lambda: FIXED_TODAY,
    )
    session = await orchestrator.create_session()

    await repos.extractions.save(
        ExtractionJob(
            session_id=session.id,
            status=ExtractionStatus.COMPLETED,
            candidates=[
                CandidateCondition(
                    id="c1",
                    original_term="asthma",
                    canonical=CanonicalCondition(code="ASTHMA", label="Asthma"),
                    evidence=Evidence(doc_id="f1", snippet="asthma"),
                )
            ],
        )
    )
    await intake.submit_confirmation(
        session.id,
        confirmed=[ConfirmedCondition(candidate_id="c1")],
        rejected=[],
        manual_add=[],
    )

    result = await _answer(orchestrator, session.id, LOW_RISK_ANSWERS[:6])
    envelope = result.next_question
    assert envelope.question.id == "q-007"
    assert envelope.question.prompt.startswith("We noted Asthma from your documents.")
    assert envelope.prefill_context.confirmed_conditions == ["Asthma"]
    assert envelope.prefill_context.prefill.evidence_refs == ["f1:1"]
    assert catalog.get("q-007").prompt == "Do you have any pre-existing medical conditions?", (
        "Catalog question must not be mutated"
    )

    transcript = await orchestrator.get_transcript(session.id)
    assert transcript[-1].text == envelope.question.prompt
