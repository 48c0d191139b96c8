"""
ID generation utilities for docgraph.

All identifiers are deterministic so that re-ingesting the same file
produces the same graph nodes and vector points:
- Documents: {repository}:{path}, both lowercased
- Chunks: {document_id}:chunk-N
- Code examples: {chunk_id}:code-N
- Concepts: concept:{normalized-name}
- Repositories: repository:{name}
"""

import posixpath
import re
from pathlib import PurePosixPath

_SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_CONCEPT_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def normalize_path(path: str) -> str:
    """
    Normalize a repository-relative path to forward slashes.

    Args:
        path: Path as reported by source control or the caller

    Returns:
        Path with forward slashes and no leading "./" or "/"
    """
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


def generate_document_id(repository: str, file_path: str) -> str:
    """
    Generate the stable Document ID for a file in a repository.

    Args:
        repository: Repository name
        file_path: Repository-relative file path

    Returns:
        ID in format "repository:path", lowercased
    """
    return f"{repository.lower()}:{normalize_path(file_path).lower()}"


def generate_chunk_id(document_id: str, chunk_index: int) -> str:
    """
    Generate Chunk ID based on parent document.

    Args:
        document_id: Parent document ID
        chunk_index: Zero-based chunk index

    Returns:
        ID in format "document_id:chunk-N"
    """
    return f"{document_id}:chunk-{chunk_index}"


def generate_code_example_id(chunk_id: str, example_index: int) -> str:
    """Generate CodeExample ID based on its owning chunk."""
    return f"{chunk_id}:code-{example_index}"


def generate_repository_node_id(repository: str) -> str:
    """Generate the ID of the Repository node that carries concept provenance."""
    return f"repository:{repository.lower()}"


def normalize_concept_id(name: str) -> str:
    """
    Generate a Concept ID from a concept name.

    Lowercases, turns spaces into hyphens, drops anything outside
    [a-z0-9-] and collapses repeated hyphens.

    Args:
        name: Concept name as extracted

    Returns:
        ID in format "concept:normalized-name"
    """
    slug = name.strip().lower().replace(" ", "-")
    slug = _CONCEPT_INVALID_CHARS.sub("", slug)
    slug = _REPEATED_HYPHENS.sub("-", slug).strip("-")
    return f"concept:{slug}"


def derive_title(file_path: str) -> str:
    """
    Derive a document title from its file name.

    Args:
        file_path: Repository-relative file path

    Returns:
        File stem with "-" and "_" replaced by spaces
    """
    stem = PurePosixPath(normalize_path(file_path)).stem
    return stem.replace("-", " ").replace("_", " ").strip()


def resolve_relative_link(source_path: str, url: str) -> str | None:
    """
    Resolve a relative markdown link against the linking file.

    Args:
        source_path: Repository-relative path of the file holding the link
        url: Link target as written in the markdown

    Returns:
        Lowercased repository-relative target path, or None for links
        with a scheme (http, mailto, ...) and pure in-page anchors
    """
    if _SCHEME_PATTERN.match(url):
        return None

    target = url.split("#", 1)[0].split("?", 1)[0].strip()
    if not target:
        return None

    target = target.replace("\\", "/")
    if target.startswith("/"):
        joined = target.lstrip("/")
    else:
        base_dir = posixpath.dirname(normalize_path(source_path))
        joined = posixpath.join(base_dir, target) if base_dir else target

    parts: list[str] = []
    for part in joined.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if parts:
                parts.pop()
            continue
        parts.append(part)

    if not parts:
        return None
    return "/".join(parts).lower()
