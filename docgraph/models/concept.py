"""
Concept models.

Concepts are emergent: the extractor proposes candidates, the resolver
folds them into canonical concepts keyed by normalized name and alias.
Categories are open string tags.
"""

from pydantic import BaseModel, Field

from docgraph.models.relationships import Relationship


class Concept(BaseModel):
    """Canonical concept node."""

    id: str = Field(..., description="Concept ID (concept:normalized-name)")
    name: str
    aliases: list[str] = Field(default_factory=list, description="Alternate names, deduplicated")
    description: str | None = None
    category: str | None = None
    related_concept_ids: list[str] = Field(default_factory=list)

    def match_keys(self) -> set[str]:
        """Case-insensitive keys this concept answers to."""
        return {key.strip().lower() for key in [self.name, *self.aliases] if key.strip()}


class ExtractedConcept(BaseModel):
    """A candidate concept proposed by the extractor."""

    name: str = Field(..., description="Canonical name of the concept, e.g. 'React'")
    category: str | None = Field(
        default=None, description="Free-form category such as 'library' or 'pattern'"
    )
    description: str | None = Field(default=None, description="One sentence description")
    aliases: list[str] = Field(default_factory=list, description="Other names used for it")
    related: list[str] = Field(
        default_factory=list, description="Names of other concepts in the text it relates to"
    )

    def match_keys(self) -> set[str]:
        """Case-insensitive keys this candidate answers to."""
        return {key.strip().lower() for key in [self.name, *self.aliases] if key.strip()}


class ConceptExtraction(BaseModel):
    """Structured extractor output for one piece of text."""

    concepts: list[ExtractedConcept] = Field(default_factory=list)
    doc_type: str | None = Field(
        default=None,
        description="Kind of document the text belongs to, e.g. 'guide', 'reference', 'adr'",
    )


class ResolutionResult(BaseModel):
    """Output of the cross-repository resolver for one batch of candidates."""

    concepts: list[Concept] = Field(default_factory=list, description="Canonical concepts to upsert")
    relationships: list[Relationship] = Field(
        default_factory=list, description="Provenance and concept-to-concept edges"
    )
    concept_ids: dict[str, str] = Field(
        default_factory=dict, description="Lowercased candidate name/alias -> canonical concept ID"
    )

    def concept_id_for(self, name: str) -> str | None:
        """Canonical concept ID for a candidate name or alias."""
        return self.concept_ids.get(name.strip().lower())
