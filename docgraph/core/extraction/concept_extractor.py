"""
LLM-backed concept extraction.

Proposes candidate concepts (libraries, services, patterns, protocols...)
for a piece of documentation together with a suggested document type.
Canonicalization is left to the CrossRepoEntityResolver.
"""

from abc import ABC, abstractmethod

from docgraph.core.llm.base import LLMProvider
from docgraph.models.concept import ConceptExtraction
from docgraph.utils.exceptions import ValidationError
from docgraph.utils.logger import get_logger

logger = get_logger(__name__)

# Chunks are truncated to this many characters before prompting
MAX_PROMPT_CHARS = 8000


class ConceptExtractor(ABC):
    """Abstract base for concept extractors."""

    @abstractmethod
    async def extract(self, text: str) -> ConceptExtraction:
        """
        Propose candidate concepts for a piece of text.

        Args:
            text: Chunk content

        Returns:
            Candidate concepts and an optional document type suggestion
        """
        pass


class LLMConceptExtractor(ConceptExtractor):
    """Concept extractor that asks an LLM for structured output."""

    def __init__(self, llm: LLMProvider, max_tokens: int = 1000):
        """
        Initialize extractor.

        Args:
            llm: LLM provider supporting structured completion
            max_tokens: Token limit for the extraction response
        """
        self.llm = llm
        self.max_tokens = max_tokens

    def _build_prompt(self, text: str) -> str:
        return f"""Identify the technical concepts discussed in this documentation excerpt.

DOCUMENTATION:
{text[:MAX_PROMPT_CHARS]}

For each concept return:
- name: the canonical name (e.g. "React", "OAuth 2.0", "Circuit Breaker")
- category: a short free-form tag such as library, service, pattern, protocol, tool
- description: one sentence, or null
- aliases: other names the text uses for the same thing
- related: names of other concepts in this list it is directly related to

Also suggest doc_type, a short tag for the kind of document (guide, reference,
tutorial, adr, runbook, ...), or null if unclear.

Only include concepts a reader could look up elsewhere. Return at most 10.
"""

    async def extract(self, text: str) -> ConceptExtraction:
        """
        Extract candidate concepts.

        Blank text yields an empty extraction without calling the LLM.

        Raises:
            LLMError: If the provider call fails
            ValidationError: If the response cannot be parsed
        """
        if not text or not text.strip():
            return ConceptExtraction()

        result = await self.llm.complete(
            self._build_prompt(text),
            response_format=ConceptExtraction,
            max_tokens=self.max_tokens,
            temperature=0.0,
        )
        if not isinstance(result, ConceptExtraction):
            raise ValidationError(
                "Concept extraction returned an unexpected type",
                context={"type": type(result).__name__},
            )

        # Drop nameless candidates the model sometimes emits
        concepts = [c for c in result.concepts if c.name and c.name.strip()]
        logger.bind(
            concepts=[c.name for c in concepts], doc_type=result.doc_type
        ).debug(f"Extracted {len(concepts)} concepts")
        return ConceptExtraction(concepts=concepts, doc_type=result.doc_type)
