"""Local provider implementations that need no external service.

``PlainTextExtractor`` handles ``text/*`` uploads and rejects everything
else, which routes binary documents onto the pipeline's fallback text.
``KeywordConditionExtractor`` scans text for dictionary synonyms and is
also what the pipeline falls back to when a configured condition provider
fails.
"""

from __future__ import annotations

import random

from interview_engine.constants import (
    KEYWORD_CONFIDENCE_MAX,
    KEYWORD_CONFIDENCE_MIN,
    KEYWORD_FALLBACK_LIMIT,
)
from interview_engine.dictionary import ConditionDictionary
from interview_engine.errors import ExternalProviderFailure
from interview_engine.interfaces import (
    ConditionExtractionProvider,
    TextExtractionProvider,
)
from interview_engine.models.intake import ExtractedTerm
from interview_store.models.enums import CandidateStatus


class PlainTextExtractor(TextExtractionProvider):
    """Decode ``text/*`` uploads as UTF-8; refuse anything else."""

    async def extract_text(self, data: bytes, mime_type: str) -> str:
        if not mime_type.startswith("text/"):
            raise ExternalProviderFailure(f"No text extractor available for {mime_type}")
        return data.decode("utf-8", errors="replace")


class KeywordConditionExtractor(ConditionExtractionProvider):
    """Dictionary synonym scan with a synthesised confidence.

    Args:
        dictionary: the loaded condition dictionary
        limit: maximum number of hits per document
        rng: random source for confidences; injectable for tests
    """

    def __init__(
        self,
        dictionary: ConditionDictionary,
        *,
        limit: int = KEYWORD_FALLBACK_LIMIT,
        rng: random.Random | None = None,
    ) -> None:
        self._dictionary = dictionary
        self._limit = limit
        self._rng = rng or random.Random()

    async def extract_conditions(self, text: str) -> list[ExtractedTerm]:
        return [
            ExtractedTerm(
                term=synonym,
                confidence=round(self._rng.uniform(KEYWORD_CONFIDENCE_MIN, KEYWORD_CONFIDENCE_MAX), 3),
                status=CandidateStatus.ACTIVE,
            )
            for _entry, synonym in self._dictionary.scan_text(text, limit=self._limit)
        ]
