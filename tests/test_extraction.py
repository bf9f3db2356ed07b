"""ExtractionPipeline tests — text, terms, matching and evidence.

Tests build the pipeline around the packaged dictionary and replace the
providers with AsyncMock objects where a failure or a fixed term list is
needed.

Scenarios:
  1. Plain-text documents go through the keyword scan
  2. Unreadable documents fall back to the fixed text (or fail when
     fallback is disabled)
  3. Provider terms map exact/partial; unmatched terms follow the policy
  4. A failing condition provider degrades to the keyword scan
  5. Evidence snippets are PHI-redacted with the raw text kept for audit
"""

import random
from unittest.mock import AsyncMock

import pytest

from interview_engine.constants import (
    KEYWORD_CONFIDENCE_MAX,
    KEYWORD_CONFIDENCE_MIN,
    UNRESOLVED_CODE,
)
from interview_engine.errors import ExternalProviderFailure
from interview_engine.extraction import ExtractionPipeline, build_snippet
from interview_engine.models.intake import ExtractedTerm
from interview_engine.redaction import DATE_MASK
from interview_store.models.enums import CandidateStatus, MatchType


def _condition_provider(*terms: ExtractedTerm) -> AsyncMock:
    provider = AsyncMock()
    provider.extract_conditions.return_value = list(terms)
    return provider


def _failing_text_provider() -> AsyncMock:
    provider = AsyncMock()
    provider.extract_text.side_effect = RuntimeError("OCR service unavailable")
    return provider


# =====================================================================
# Snippets
# =====================================================================


class TestBuildSnippet:

    def test_window_widened_to_word_boundaries(self):
        text = "The patient has a long history of asthma and uses an inhaler daily."
        snippet = build_snippet(text, "asthma", context=10)
        assert "asthma" in snippet
        assert snippet.startswith("…")
        assert snippet.endswith("…")
        # No word is cut in half
        for word in snippet.strip("…").split():
            assert word in text

    def test_case_insensitive(self):
        assert build_snippet("Known ASTHMA.", "asthma") == "Known ASTHMA."

    def test_missing_term(self):
        assert build_snippet("nothing here", "asthma") is None
        assert build_snippet("anything", "") is None


# =====================================================================
# Keyword path
# =====================================================================


class TestKeywordPath:

    @pytest.mark.asyncio
    async def test_plain_text_keyword_scan(self, dictionary):
        pipeline = ExtractionPipeline(dictionary, rng=random.Random(7))
        text = b"Diagnosed with asthma in 2015. Also has high blood pressure."
        candidates = await pipeline.run("file-1", text, "text/plain")

        assert [c.canonical.code for c in candidates] == ["ASTHMA", "HYPERTENSION"]
        assert [c.id for c in candidates] == ["candidate-file-1-0", "candidate-file-1-1"]
        for c in candidates:
            assert c.match_type == MatchType.KEYWORD
            assert KEYWORD_CONFIDENCE_MIN <= c.confidence <= KEYWORD_CONFIDENCE_MAX
            assert c.status == CandidateStatus.ACTIVE
            assert c.evidence.doc_id == "file-1"
            assert c.evidence.page == 1
        assert "high blood pressure" in candidates[1].evidence.snippet

    @pytest.mark.asyncio
    async def test_no_mentions_yields_no_candidates(self, dictionary):
        pipeline = ExtractionPipeline(dictionary)
        assert await pipeline.run("file-1", b"Routine check, all clear.", "text/plain") == []

    @pytest.mark.asyncio
    async def test_binary_document_uses_fallback_text(self, dictionary):
        """PDFs have no local text extractor, so the fallback text is scanned."""
        pipeline = ExtractionPipeline(dictionary)
        candidates = await pipeline.run("file-1", b"%PDF-1.7", "application/pdf")
        assert {c.canonical.code for c in candidates} == {"ASTHMA", "HYPERTENSION"}

    @pytest.mark.asyncio
    async def test_fallback_disabled_raises(self, dictionary):
        pipeline = ExtractionPipeline(
            dictionary,
            text_provider=_failing_text_provider(),
            fallback_enabled=False,
        )
        with pytest.raises(ExternalProviderFailure, match="file-1"):
            await pipeline.run("file-1", b"x", "application/pdf")


# =====================================================================
# Provider path and unmatched-term policies
# =====================================================================


class TestProviderPath:

    @pytest.mark.asyncio
    async def test_provider_terms_mapped(self, dictionary):
        provider = _condition_provider(
            ExtractedTerm(term="HTN", confidence=0.91, severity="mild", page=2),
            ExtractedTerm(term="severe bronchial asthma"),
        )
        pipeline = ExtractionPipeline(dictionary, condition_provider=provider)
        text = b"Problem list: HTN; severe bronchial asthma."
        candidates = await pipeline.run("file-1", text, "text/plain")

        htn, asthma = candidates
        assert htn.canonical.code == "HYPERTENSION"
        assert htn.match_type == MatchType.EXACT
        assert htn.confidence == 0.91
        assert htn.severity == "mild"
        assert htn.evidence.page == 2
        assert asthma.canonical.code == "ASTHMA"
        assert asthma.match_type == MatchType.PARTIAL
        assert asthma.confidence == 0.8, "Terms without confidence get the default"
        provider.extract_conditions.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_codes_collapsed_within_file(self, dictionary):
        provider = _condition_provider(
            ExtractedTerm(term="asthma"),
            ExtractedTerm(term="Asthmatic"),
        )
        pipeline = ExtractionPipeline(dictionary, condition_provider=provider)
        candidates = await pipeline.run("file-1", b"asthma", "text/plain")
        assert len(candidates) == 1
        assert candidates[0].original_term == "asthma"

    @pytest.mark.asyncio
    async def test_unmatched_default_policy(self, dictionary):
        provider = _condition_provider(ExtractedTerm(term="broken toe"))
        pipeline = ExtractionPipeline(dictionary, condition_provider=provider)
        (candidate,) = await pipeline.run("file-1", b"Fractured: broken toe", "text/plain")
        assert candidate.canonical.code == dictionary.default_entry.code
        assert candidate.match_type == MatchType.DEFAULT
        assert candidate.original_term == "broken toe"

    @pytest.mark.asyncio
    async def test_unmatched_unresolved_policy(self, dictionary):
        provider = _condition_provider(ExtractedTerm(term="broken toe"))
        pipeline = ExtractionPipeline(
            dictionary, condition_provider=provider, unmatched_policy="unresolved",
        )
        (candidate,) = await pipeline.run("file-1", b"broken toe", "text/plain")
        assert candidate.canonical.code == UNRESOLVED_CODE
        assert candidate.canonical.label == "broken toe"
        assert candidate.match_type == MatchType.UNRESOLVED

    @pytest.mark.asyncio
    async def test_unmatched_drop_policy(self, dictionary):
        provider = _condition_provider(
            ExtractedTerm(term="broken toe"),
            ExtractedTerm(term="asthma"),
        )
        pipeline = ExtractionPipeline(
            dictionary, condition_provider=provider, unmatched_policy="drop",
        )
        candidates = await pipeline.run("file-1", b"asthma", "text/plain")
        assert [c.canonical.code for c in candidates] == ["ASTHMA"]
        assert candidates[0].id == "candidate-file-1-0"

    def test_unknown_policy_rejected(self, dictionary):
        with pytest.raises(ValueError, match="unmatched-term policy"):
            ExtractionPipeline(dictionary, unmatched_policy="guess")

    @pytest.mark.asyncio
    async def test_provider_failure_degrades_to_keyword_scan(self, dictionary):
        provider = AsyncMock()
        provider.extract_conditions.side_effect = TimeoutError("LLM timed out")
        pipeline = ExtractionPipeline(dictionary, condition_provider=provider)
        candidates = await pipeline.run("file-1", b"Known epilepsy.", "text/plain")
        assert [c.canonical.code for c in candidates] == ["EPILEPSY"]
        assert candidates[0].match_type == MatchType.KEYWORD

    @pytest.mark.asyncio
    async def test_term_absent_from_text_gets_placeholder_snippet(self, dictionary):
        provider = _condition_provider(ExtractedTerm(term="stroke"))
        pipeline = ExtractionPipeline(dictionary, condition_provider=provider)
        (candidate,) = await pipeline.run("file-1", b"unrelated", "text/plain")
        assert candidate.evidence.snippet == "Found reference to Stroke in document"


# =====================================================================
# Evidence redaction
# =====================================================================


@pytest.mark.asyncio
async def test_snippet_redacted_raw_kept(dictionary):
    pipeline = ExtractionPipeline(dictionary)
    text = b"Seen on 01/02/2020 for asthma review."
    (candidate,) = await pipeline.run("file-1", text, "text/plain")
    assert DATE_MASK in candidate.evidence.snippet
    assert "01/02/2020" not in candidate.evidence.snippet
    assert "01/02/2020" in candidate.evidence.raw_snippet
