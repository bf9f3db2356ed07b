"""Reference data endpoints — the question catalog and condition dictionary.

These are read-only lookups backed by the YAML loaded at startup; no
session is involved.
"""

from fastapi import APIRouter, Depends, Query

from interview_engine.catalog import QuestionCatalog
from interview_engine.constants import DICTIONARY_SEARCH_LIMIT
from interview_engine.dictionary import ConditionDictionary
from interview_engine.models.intake import DictionaryHit
from interview_engine.models.question import Question

from interview_server.config import MAX_SEARCH_LIMIT
from interview_server.dependencies import get_catalog, get_dictionary

router = APIRouter(tags=["reference"])


@router.get("/questions")
async def list_questions(
    catalog: QuestionCatalog = Depends(get_catalog),
) -> list[Question]:
    """The full interview, in order."""
    return catalog.questions


@router.get("/dictionary/search")
async def search_dictionary(
    q: str = Query(""),
    limit: int = Query(DICTIONARY_SEARCH_LIMIT, ge=1, le=MAX_SEARCH_LIMIT),
    dictionary: ConditionDictionary = Depends(get_dictionary),
) -> list[DictionaryHit]:
    """Conditions whose label or synonym contains ``q`` (min 2 characters)."""
    return dictionary.search(q, limit=limit)
