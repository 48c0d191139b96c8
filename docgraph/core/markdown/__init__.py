"""
Markdown parsing and header-aware chunking.
"""

from docgraph.core.markdown.parser import (
    ChunkInfo,
    CodeBlockInfo,
    HeaderInfo,
    LinkInfo,
    ParsedDocument,
    chunk_by_headers,
    extract_code_blocks,
    extract_headers,
    extract_links,
    parse,
    parse_frontmatter,
)

__all__ = [
    "ParsedDocument",
    "HeaderInfo",
    "LinkInfo",
    "CodeBlockInfo",
    "ChunkInfo",
    "parse",
    "parse_frontmatter",
    "extract_headers",
    "extract_links",
    "extract_code_blocks",
    "chunk_by_headers",
]
