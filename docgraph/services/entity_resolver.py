"""
Cross-repository entity resolution.

Folds extracted concept candidates into canonical Concept nodes shared by
every repository, so "React" documented in two repositories is one node
with a provenance edge from each Repository node.
"""

from docgraph.core.graph_store.base import GraphStore
from docgraph.models.concept import Concept, ExtractedConcept, ResolutionResult
from docgraph.models.relationships import NodeLabel, Relationship, RelationshipType
from docgraph.utils.id_generator import generate_repository_node_id, normalize_concept_id
from docgraph.utils.logger import get_logger

logger = get_logger(__name__)


def _merge_aliases(concept: Concept, names: list[str]) -> None:
    """Add names as aliases unless they already match the concept."""
    keys = concept.match_keys()
    for name in names:
        cleaned = name.strip()
        if cleaned and cleaned.lower() not in keys:
            concept.aliases.append(cleaned)
            keys.add(cleaned.lower())


class CrossRepoEntityResolver:
    """
    Resolves candidate concepts against canonical concepts in the graph.

    Matching is case-insensitive on name and aliases. A match enriches the
    existing concept (new aliases, missing description/category); otherwise
    a new concept is created with ID concept:{normalized-name}.
    """

    def __init__(self, graph_store: GraphStore):
        """
        Initialize resolver.

        Args:
            graph_store: Graph store holding canonical concepts
        """
        self.graph_store = graph_store

    @staticmethod
    def _merge_candidates(candidates: list[ExtractedConcept]) -> list[ExtractedConcept]:
        """Merge candidates that share a name or alias within one batch."""
        merged: list[ExtractedConcept] = []
        by_key: dict[str, ExtractedConcept] = {}

        for candidate in candidates:
            keys = candidate.match_keys()
            if not keys:
                continue
            existing = next((by_key[key] for key in keys if key in by_key), None)
            if existing is None:
                existing = candidate.model_copy(deep=True)
                merged.append(existing)
            else:
                for alias in [candidate.name, *candidate.aliases]:
                    if alias.strip() and alias.strip().lower() not in existing.match_keys():
                        existing.aliases.append(alias.strip())
                existing.description = existing.description or candidate.description
                existing.category = existing.category or candidate.category
                for related in candidate.related:
                    if related not in existing.related:
                        existing.related.append(related)
            for key in existing.match_keys():
                by_key[key] = existing

        return merged

    async def resolve(self, candidates: list[ExtractedConcept], repository: str) -> ResolutionResult:
        """
        Resolve a batch of candidates contributed by one repository.

        Args:
            candidates: Candidates from the concept extractor
            repository: Repository the candidates were found in

        Returns:
            Canonical concepts to upsert, provenance and concept-to-concept
            edges, and the candidate key -> concept ID lookup

        Raises:
            GraphStoreError: If the canonical concept lookup fails
        """
        merged = self._merge_candidates(candidates)
        if not merged:
            return ResolutionResult()

        all_keys = sorted({key for candidate in merged for key in candidate.match_keys()})
        existing = await self.graph_store.find_concepts(all_keys)
        existing.sort(key=lambda concept: concept.id)

        concepts: dict[str, Concept] = {}
        concept_ids: dict[str, str] = {}
        surfaced_names: dict[str, str] = {}

        for candidate in merged:
            keys = candidate.match_keys()
            canonical = next(
                (concepts.get(c.id, c) for c in existing if c.match_keys() & keys), None
            )

            if canonical is None:
                concept_id = normalize_concept_id(candidate.name)
                canonical = concepts.get(concept_id) or Concept(
                    id=concept_id,
                    name=candidate.name.strip(),
                    description=candidate.description,
                    category=candidate.category,
                )
            else:
                canonical = canonical.model_copy(deep=True) if canonical.id not in concepts else canonical

            _merge_aliases(canonical, [candidate.name, *candidate.aliases])
            canonical.description = canonical.description or candidate.description
            canonical.category = canonical.category or candidate.category

            concepts[canonical.id] = canonical
            surfaced_names.setdefault(canonical.id, candidate.name.strip())
            for key in keys:
                concept_ids[key] = canonical.id

        relationships: list[Relationship] = []
        repository_node_id = generate_repository_node_id(repository)
        for concept_id, concept in concepts.items():
            relationships.append(
                Relationship(
                    type=RelationshipType.RELATES_TO.value,
                    source_id=repository_node_id,
                    target_id=concept_id,
                    properties={
                        "repository": repository.lower(),
                        "name": surfaced_names[concept_id],
                    },
                    source_label=NodeLabel.REPOSITORY,
                    target_label=NodeLabel.CONCEPT,
                )
            )

        seen_edges: set[tuple[str, str]] = set()
        for candidate in merged:
            source_id = concept_ids[next(iter(candidate.match_keys()))]
            for related_name in candidate.related:
                target_id = concept_ids.get(related_name.strip().lower())
                if target_id is None or target_id == source_id:
                    continue
                if (source_id, target_id) in seen_edges:
                    continue
                seen_edges.add((source_id, target_id))

                source = concepts[source_id]
                if target_id not in source.related_concept_ids:
                    source.related_concept_ids.append(target_id)
                relationships.append(
                    Relationship(
                        type=RelationshipType.RELATES_TO.value,
                        source_id=source_id,
                        target_id=target_id,
                        source_label=NodeLabel.CONCEPT,
                        target_label=NodeLabel.CONCEPT,
                    )
                )

        logger.bind(
            repository=repository, matched_existing=len({c.id for c in existing} & set(concepts))
        ).debug(f"Resolved {len(merged)} candidates into {len(concepts)} concepts")

        return ResolutionResult(
            concepts=list(concepts.values()),
            relationships=relationships,
            concept_ids=concept_ids,
        )
