"""
Concept extraction from documentation text.
"""

from docgraph.core.extraction.concept_extractor import ConceptExtractor, LLMConceptExtractor

__all__ = ["ConceptExtractor", "LLMConceptExtractor"]
