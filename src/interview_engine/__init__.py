"""interview_engine — adaptive interview and document-intake SDK.

Public API:
    QuestionCatalog      — loads the ordered interview and validates answers
    ConditionDictionary  — canonical conditions with search and matching
    decide               — pure risk scoring over a completed answer map
    ExtractionPipeline   — document -> candidate conditions, with fallbacks
    IntakeCoordinator    — uploads, background extraction, confirmation, prefill
    SessionOrchestrator  — the interview state machine
    PromptManager        — Jinja2 rendering of adaptive and provider prompts

Provider interfaces (implemented outside this package for real OCR / LLM):
    TextExtractionProvider       — document bytes -> text
    ConditionExtractionProvider  — text -> raw condition terms
"""

from interview_engine.catalog import QuestionCatalog
from interview_engine.decision import decide
from interview_engine.dictionary import ConditionDictionary
from interview_engine.extraction import ExtractionPipeline
from interview_engine.intake import IntakeCoordinator
from interview_engine.interfaces import (
    ConditionExtractionProvider,
    TextExtractionProvider,
)
from interview_engine.orchestrator import SessionOrchestrator
from interview_engine.prompt import PromptManager

__all__ = [
    "ConditionDictionary",
    "ConditionExtractionProvider",
    "ExtractionPipeline",
    "IntakeCoordinator",
    "PromptManager",
    "QuestionCatalog",
    "SessionOrchestrator",
    "TextExtractionProvider",
    "decide",
]
