"""ExtractionPipeline — turn one uploaded document into candidate conditions.

Stages, each with its own degradation path:

  1. **Text** — the text provider reads the document.  On failure the
     pipeline substitutes a fixed fallback text (when enabled) so the
     applicant still sees something to review; with fallback disabled the
     failure propagates as :class:`ExternalProviderFailure`.
  2. **Terms** — the condition provider finds mentions.  When no provider
     is configured, or it fails, the dictionary keyword scan runs instead.
  3. **Match** — every term is mapped onto the condition dictionary (exact,
     then partial).  Terms that match nothing follow the configured
     ``unmatched_policy``:

       ``default``     map to the first dictionary entry
       ``unresolved``  keep the term under the ``UNRESOLVED`` code
       ``drop``        discard the term

  4. **Evidence** — a window of text around the mention becomes the
     evidence snippet, PHI-redacted, with the raw window kept for audit.

The pipeline is stateless across calls; aggregation into the session's
extraction job is the intake coordinator's responsibility.
"""

from __future__ import annotations

import logging
import random

from interview_engine.constants import (
    DEFAULT_CANDIDATE_CONFIDENCE,
    FALLBACK_DOCUMENT_TEXT,
    SNIPPET_CONTEXT_CHARS,
    UNMATCHED_POLICIES,
    UNRESOLVED_CODE,
)
from interview_engine.dictionary import ConditionDictionary
from interview_engine.errors import ExternalProviderFailure
from interview_engine.interfaces import (
    ConditionExtractionProvider,
    TextExtractionProvider,
)
from interview_engine.models.intake import ExtractedTerm
from interview_engine.providers import KeywordConditionExtractor, PlainTextExtractor
from interview_engine.redaction import redact_phi
from interview_store.models.enums import CandidateStatus, MatchType
from interview_store.models.records import (
    CandidateCondition,
    CanonicalCondition,
    Evidence,
)

logger = logging.getLogger(__name__)


def build_snippet(text: str, term: str, *, context: int = SNIPPET_CONTEXT_CHARS) -> str | None:
    """Return the text window around the first mention of ``term``.

    Window edges are widened to the nearest whitespace so words are not
    cut in half.  ``None`` if the term does not occur.
    """
    if not term:
        return None
    position = text.lower().find(term.lower())
    if position < 0:
        return None

    start = max(0, position - context)
    end = min(len(text), position + len(term) + context)
    while start > 0 and not text[start - 1].isspace():
        start -= 1
    while end < len(text) and not text[end].isspace():
        end += 1

    snippet = " ".join(text[start:end].split())
    prefix = "…" if start > 0 else ""
    suffix = "…" if end < len(text) else ""
    return f"{prefix}{snippet}{suffix}"


class ExtractionPipeline:
    """Text -> terms -> dictionary matches -> candidate conditions.

    Args:
        dictionary: the loaded condition dictionary
        text_provider: document-to-text backend; defaults to
            :class:`PlainTextExtractor`
        condition_provider: optional text-to-terms backend; when ``None``
            the keyword scan is used for every document
        fallback_enabled: substitute the fallback text when the text
            provider fails
        unmatched_policy: ``default`` | ``unresolved`` | ``drop``
        rng: random source for the keyword scan's confidences
    """

    def __init__(
        self,
        dictionary: ConditionDictionary,
        *,
        text_provider: TextExtractionProvider | None = None,
        condition_provider: ConditionExtractionProvider | None = None,
        fallback_enabled: bool = True,
        unmatched_policy: str = "default",
        rng: random.Random | None = None,
    ) -> None:
        if unmatched_policy not in UNMATCHED_POLICIES:
            raise ValueError(
                f"Unknown unmatched-term policy {unmatched_policy!r}; "
                f"expected one of {', '.join(UNMATCHED_POLICIES)}"
            )
        self._dictionary = dictionary
        self._text_provider = text_provider or PlainTextExtractor()
        self._condition_provider = condition_provider
        self._keyword_scan = KeywordConditionExtractor(dictionary, rng=rng)
        self._fallback_enabled = fallback_enabled
        self._unmatched_policy = unmatched_policy

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, file_id: str, data: bytes, mime_type: str) -> list[CandidateCondition]:
        """Extract candidate conditions from one document.

        Raises :class:`ExternalProviderFailure` only when text extraction
        fails and fallback text is disabled.
        """
        text = await self._extract_text(file_id, data, mime_type)
        terms, from_keyword_scan = await self._extract_terms(file_id, text)

        candidates: list[CandidateCondition] = []
        seen_codes: set[str] = set()
        for term in terms:
            candidate = self._to_candidate(
                file_id,
                len(candidates),
                term,
                text,
                keyword=from_keyword_scan,
            )
            if candidate is None:
                continue
            dedupe_key = candidate.canonical.code
            if dedupe_key == UNRESOLVED_CODE:
                dedupe_key = f"{UNRESOLVED_CODE}:{candidate.original_term.lower()}"
            if dedupe_key in seen_codes:
                continue
            seen_codes.add(dedupe_key)
            candidates.append(candidate)

        logger.info(
            "Extraction finished: file_id=%s, terms=%d, candidates=%d",
            file_id, len(terms), len(candidates),
        )
        return candidates

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _extract_text(self, file_id: str, data: bytes, mime_type: str) -> str:
        try:
            return await self._text_provider.extract_text(data, mime_type)
        except Exception as exc:
            if not self._fallback_enabled:
                raise ExternalProviderFailure(
                    f"Text extraction failed for file_id={file_id}: {exc}"
                ) from exc
            logger.warning(
                "Text extraction failed for file_id=%s (%s); using fallback text",
                file_id, exc,
            )
            return FALLBACK_DOCUMENT_TEXT

    async def _extract_terms(self, file_id: str, text: str) -> tuple[list[ExtractedTerm], bool]:
        """Return the terms and whether they came from the keyword scan."""
        if self._condition_provider is not None:
            try:
                return await self._condition_provider.extract_conditions(text), False
            except Exception as exc:
                logger.warning(
                    "Condition provider failed for file_id=%s (%s); using keyword scan",
                    file_id, exc,
                )
        return await self._keyword_scan.extract_conditions(text), True

    def _to_candidate(
        self,
        file_id: str,
        index: int,
        term: ExtractedTerm,
        text: str,
        *,
        keyword: bool,
    ) -> CandidateCondition | None:
        matched = self._dictionary.match(term.term)
        if matched is not None:
            entry, match_type = matched
            canonical = CanonicalCondition(code=entry.code, label=entry.label, category=entry.category)
            if keyword:
                match_type = MatchType.KEYWORD
        elif self._unmatched_policy == "drop":
            logger.info("Dropping unmatched term %r from file_id=%s", term.term, file_id)
            return None
        elif self._unmatched_policy == "unresolved":
            canonical = CanonicalCondition(code=UNRESOLVED_CODE, label=term.term.strip())
            match_type = MatchType.UNRESOLVED
        else:
            entry = self._dictionary.default_entry
            canonical = CanonicalCondition(code=entry.code, label=entry.label, category=entry.category)
            match_type = MatchType.DEFAULT

        raw = build_snippet(text, term.term) or f"Found reference to {canonical.label} in document"
        return CandidateCondition(
            id=f"candidate-{file_id}-{index}",
            original_term=term.term,
            canonical=canonical,
            confidence=term.confidence if term.confidence is not None else DEFAULT_CANDIDATE_CONFIDENCE,
            status=term.status or CandidateStatus.ACTIVE,
            severity=term.severity,
            onset_date=term.onset_date,
            evidence=Evidence(
                doc_id=file_id,
                page=term.page,
                snippet=redact_phi(raw),
                raw_snippet=raw,
            ),
            match_type=match_type,
        )
