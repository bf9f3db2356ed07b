"""Abstract provider interfaces for document extraction.

These ABCs define the contract that OCR / LLM backends must fulfil.  The
SDK ships only local implementations (see :mod:`interview_engine.providers`);
real OCR and LLM integrations live outside this package and are injected
into :class:`~interview_engine.extraction.ExtractionPipeline`.

Typical integration flow::

    pipeline = ExtractionPipeline(
        dictionary,
        text_provider=MyOcrProvider(...),
        condition_provider=MyLLMConditionProvider(prompts=PromptManager()),
    )
    candidates = await pipeline.run(file_id, data, "application/pdf")

Either provider may fail by raising any exception; the pipeline absorbs the
failure and degrades to its fallbacks so the interview can always proceed.
"""

from abc import ABC, abstractmethod

from interview_engine.models.intake import ExtractedTerm


class TextExtractionProvider(ABC):
    """Interface for turning an uploaded document into plain text."""

    @abstractmethod
    async def extract_text(self, data: bytes, mime_type: str) -> str:
        """Extract the document's text.

        Parameters
        ----------
        data:
            Raw file contents as uploaded.
        mime_type:
            The declared content type (``application/pdf``, ``image/png``,
            ...).  Implementations that cannot handle a type should raise
            :class:`~interview_engine.errors.ExternalProviderFailure`.

        Returns
        -------
        str
            The document text.  May be empty.
        """
        ...


class ConditionExtractionProvider(ABC):
    """Interface for finding condition mentions in document text.

    Implementations return raw terms; mapping them onto canonical
    dictionary codes is the pipeline's job, not the provider's.
    """

    @abstractmethod
    async def extract_conditions(self, text: str) -> list[ExtractedTerm]:
        """Extract condition mentions from ``text``.

        Returns
        -------
        list[ExtractedTerm]
            One entry per mention.  ``confidence`` may be omitted, in which
            case the pipeline assigns a default.
        """
        ...
