"""ConditionDictionary — canonical medical conditions with synonyms.

Serves three callers:

  - applicants searching for a condition to add manually (:meth:`search`)
  - the extraction pipeline mapping a raw term onto a canonical code
    (:meth:`match`)
  - the keyword fallback scanning document text when no condition provider
    is available (:meth:`scan_text`)

Entries keep the order of ``conditions.yaml``; search results and scan hits
preserve it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from interview_engine.catalog import default_data_dir, load_yaml
from interview_engine.constants import (
    DICTIONARY_MIN_QUERY_LENGTH,
    DICTIONARY_SEARCH_LIMIT,
    KEYWORD_FALLBACK_LIMIT,
)
from interview_engine.models.intake import ConditionEntry, DictionaryHit
from interview_store.models.enums import MatchType

logger = logging.getLogger(__name__)


class ConditionDictionary:
    """Ordered, read-only condition dictionary.

    Args:
        data_dir: directory containing ``conditions.yaml``.  Defaults to the
            packaged ``data/`` directory.
    """

    def __init__(self, data_dir: str | Path | None = None) -> None:
        self._base = Path(data_dir) if data_dir else default_data_dir()
        self._entries: list[ConditionEntry] = []
        self._by_code: dict[str, ConditionEntry] = {}

    def load(self) -> None:
        """Parse ``conditions.yaml``.  Raises ``ValueError`` if it is empty."""
        entries = [ConditionEntry.model_validate(raw) for raw in load_yaml(self._base / "conditions.yaml")]
        if not entries:
            raise ValueError("Condition dictionary is empty")
        self._entries = entries
        self._by_code = {e.code: e for e in entries}
        logger.info("ConditionDictionary loaded: %d conditions", len(entries))

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[ConditionEntry]:
        return list(self._entries)

    @property
    def default_entry(self) -> ConditionEntry:
        """The first entry, target of the ``default`` unmatched-term policy."""
        return self._entries[0]

    def get(self, code: str) -> ConditionEntry | None:
        return self._by_code.get(code)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str, limit: int = DICTIONARY_SEARCH_LIMIT) -> list[DictionaryHit]:
        """Case-insensitive substring search over labels and synonyms.

        Queries shorter than two characters (after stripping) return an
        empty list rather than the whole dictionary.
        """
        needle = (query or "").strip().lower()
        if len(needle) < DICTIONARY_MIN_QUERY_LENGTH:
            return []

        hits: list[DictionaryHit] = []
        for entry in self._entries:
            haystack = [entry.label.lower(), *(s.lower() for s in entry.synonyms)]
            if any(needle in term for term in haystack):
                hits.append(DictionaryHit(code=entry.code, label=entry.label, category=entry.category))
                if len(hits) >= limit:
                    break
        return hits

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def match(self, term: str) -> tuple[ConditionEntry, MatchType] | None:
        """Map a raw term onto an entry.

        Exact (case-insensitive) label or synonym matches win; otherwise the
        first entry whose label or synonym contains the term, or is contained
        in it, is returned as a partial match.  ``None`` when nothing fits.
        """
        needle = (term or "").strip().lower()
        if not needle:
            return None

        for entry in self._entries:
            if needle == entry.label.lower() or needle in (s.lower() for s in entry.synonyms):
                return entry, MatchType.EXACT

        for entry in self._entries:
            for candidate in (entry.label.lower(), *(s.lower() for s in entry.synonyms)):
                if needle in candidate or candidate in needle:
                    return entry, MatchType.PARTIAL
        return None

    def scan_text(self, text: str, limit: int = KEYWORD_FALLBACK_LIMIT) -> list[tuple[ConditionEntry, str]]:
        """Find entries whose synonyms occur in ``text``.

        Returns ``(entry, synonym)`` pairs, one per entry, in dictionary
        order and capped at ``limit``.  The synonym is the first one found
        and is what the evidence snippet is centred on.
        """
        lowered = (text or "").lower()
        hits: list[tuple[ConditionEntry, str]] = []
        for entry in self._entries:
            for synonym in entry.synonyms:
                if synonym.lower() in lowered:
                    hits.append((entry, synonym))
                    break
            if len(hits) >= limit:
                break
        return hits
