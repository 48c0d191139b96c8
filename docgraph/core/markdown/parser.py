"""
Header-aware markdown parsing and chunking.

Line-scanning parser for the subset of markdown the ingestion pipeline
needs: ATX headers, fenced code blocks, inline and reference links, and a
leading YAML frontmatter block. Everything here is pure; the same input
always produces the same output.

Algorithm:
    1. Scan lines once, tracking fenced code blocks so that '#' lines and
       link syntax inside code are ignored
    2. Build header paths with a stack of active ancestors; a header of
       level L pops every tracked header with level >= L
    3. Open chunk boundaries only at header levels 1-3

Line numbers in this module are 0-based.
"""

import re
from dataclasses import dataclass, field
from typing import Any

import yaml

# Chunk boundaries are opened only at header levels <= this value
MAX_CHUNK_HEADER_LEVEL = 3

HEADER_PATH_SEPARATOR = " > "

_HEADER_PATTERN = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
_CLOSING_HASHES = re.compile(r"(?:^|[ \t]+)#+$")
_FENCE_PATTERN = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")
_INLINE_LINK_PATTERN = re.compile(
    r"(?<!!)\[([^\[\]]*)\]\(\s*<?([^\s()<>]*)>?(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\)"
)
_REFERENCE_LINK_PATTERN = re.compile(r"(?<!!)\[([^\[\]]+)\]\[([^\[\]]*)\]")
_REFERENCE_DEFINITION_PATTERN = re.compile(r"^ {0,3}\[([^\[\]]+)\]:\s*<?(\S+?)>?(?:\s+.*)?$")
_CODE_SPAN_PATTERN = re.compile(r"(`+)(.+?)\1")
_EMPHASIS_PATTERN = re.compile(r"(\*{1,3}|(?<!\w)_{1,3})(\S(?:.*?\S)?)\1")
_ABSOLUTE_URL_PATTERN = re.compile(r"^https?://")
_FRONTMATTER_DELIMITER = re.compile(r"^---[ \t]*$")


@dataclass(frozen=True)
class HeaderInfo:
    """An ATX header with its position and ancestor path."""

    text: str
    level: int
    line: int
    span_start: int  # character offset of the header line
    span_end: int  # exclusive
    header_path: str


@dataclass(frozen=True)
class LinkInfo:
    """A link as written in the source."""

    text: str
    url: str
    line: int
    position: int  # character offset of the opening '['


@dataclass(frozen=True)
class CodeBlockInfo:
    """A fenced code block."""

    language: str
    code: str
    line: int  # line of the opening fence


@dataclass(frozen=True)
class ChunkInfo:
    """A header-bounded slice of the source; end_line is inclusive."""

    index: int
    header_path: str
    start_line: int
    end_line: int
    content: str


@dataclass(frozen=True)
class ParsedDocument:
    """Result of a single scan over a markdown text."""

    text: str
    lines: tuple[str, ...]
    headers: tuple[HeaderInfo, ...] = field(default_factory=tuple)
    links: tuple[LinkInfo, ...] = field(default_factory=tuple)
    code_blocks: tuple[CodeBlockInfo, ...] = field(default_factory=tuple)

    @property
    def line_count(self) -> int:
        return len(self.lines)


def _plain_text(text: str) -> str:
    """Strip inline markup from header text."""
    text = _INLINE_LINK_PATTERN.sub(r"\1", text)
    text = _CODE_SPAN_PATTERN.sub(lambda m: m.group(2).strip(), text)
    previous = None
    while previous != text:
        previous = text
        text = _EMPHASIS_PATTERN.sub(r"\2", text)
    return text.strip()


def _mask_code_spans(line: str) -> str:
    """Blank out inline code spans, keeping character offsets intact."""
    return _CODE_SPAN_PATTERN.sub(lambda m: " " * len(m.group(0)), line)


def _parse_header(line: str) -> tuple[int, str] | None:
    match = _HEADER_PATTERN.match(line)
    if not match:
        return None
    level = len(match.group(1))
    raw = match.group(2) or ""
    raw = _CLOSING_HASHES.sub("", raw)
    return level, _plain_text(raw)


def parse(text: str) -> ParsedDocument:
    """
    Parse markdown text into headers, links and code blocks.

    Args:
        text: Raw markdown

    Returns:
        ParsedDocument holding everything extracted in document order
    """
    lines = text.split("\n")

    headers: list[HeaderInfo] = []
    code_blocks: list[CodeBlockInfo] = []
    # (line, offset, text, url-or-reference, is_reference)
    raw_links: list[tuple[int, int, str, str, bool]] = []
    definitions: dict[str, str] = {}

    stack: list[tuple[int, str]] = []
    fence: str | None = None
    fence_language = ""
    fence_line = 0
    fence_body: list[str] = []
    offset = 0

    for line_number, line in enumerate(lines):
        line_start = offset
        offset += len(line) + 1

        if fence is not None:
            stripped = line.strip()
            if stripped.startswith(fence[0] * len(fence)) and set(stripped) == {fence[0]}:
                code_blocks.append(
                    CodeBlockInfo(
                        language=fence_language, code="\n".join(fence_body), line=fence_line
                    )
                )
                fence = None
            else:
                fence_body.append(line)
            continue

        fence_match = _FENCE_PATTERN.match(line)
        if fence_match and not (
            fence_match.group(1)[0] == "`" and "`" in fence_match.group(2)
        ):
            fence = fence_match.group(1)
            info = fence_match.group(2).strip()
            fence_language = info.split()[0] if info else ""
            fence_line = line_number
            fence_body = []
            continue

        header = _parse_header(line)
        if header is not None:
            level, header_text = header
            while stack and stack[-1][0] >= level:
                stack.pop()
            header_path = HEADER_PATH_SEPARATOR.join([*(t for _, t in stack), header_text])
            stack.append((level, header_text))
            headers.append(
                HeaderInfo(
                    text=header_text,
                    level=level,
                    line=line_number,
                    span_start=line_start,
                    span_end=line_start + len(line),
                    header_path=header_path,
                )
            )

        definition = _REFERENCE_DEFINITION_PATTERN.match(line)
        if definition:
            definitions.setdefault(definition.group(1).strip().lower(), definition.group(2))
            continue

        masked = _mask_code_spans(line)
        for match in _INLINE_LINK_PATTERN.finditer(masked):
            text_value = line[match.start(1) : match.end(1)]
            raw_links.append((line_number, line_start + match.start(), text_value, match.group(2), False))
        for match in _REFERENCE_LINK_PATTERN.finditer(masked):
            text_value = line[match.start(1) : match.end(1)]
            reference = match.group(2).strip() or text_value
            raw_links.append((line_number, line_start + match.start(), text_value, reference, True))

    # An unterminated fence runs to the end of the document
    if fence is not None:
        code_blocks.append(
            CodeBlockInfo(language=fence_language, code="\n".join(fence_body), line=fence_line)
        )

    links: list[LinkInfo] = []
    for line_number, position, link_text, target, is_reference in sorted(
        raw_links, key=lambda item: item[1]
    ):
        url = definitions.get(target.lower()) if is_reference else target
        if not url or _ABSOLUTE_URL_PATTERN.match(url):
            continue
        links.append(
            LinkInfo(text=_plain_text(link_text), url=url, line=line_number, position=position)
        )

    return ParsedDocument(
        text=text,
        lines=tuple(lines),
        headers=tuple(headers),
        links=tuple(links),
        code_blocks=tuple(code_blocks),
    )


def extract_headers(doc: ParsedDocument) -> list[HeaderInfo]:
    """Headers in document order, each with its ancestor path."""
    return list(doc.headers)


def extract_links(doc: ParsedDocument) -> list[LinkInfo]:
    """
    Links in source order.

    Absolute http(s) URLs are excluded; relative paths and '#anchor'
    links are kept. Images are not links.
    """
    return list(doc.links)


def extract_code_blocks(doc: ParsedDocument) -> list[CodeBlockInfo]:
    """Fenced code blocks in source order; language is '' when unspecified."""
    return list(doc.code_blocks)


def chunk_by_headers(text: str) -> list[ChunkInfo]:
    """
    Split markdown into chunks at header levels 1-3.

    Chunks cover every line exactly once, in order. Text before the first
    qualifying header becomes its own chunk with an empty header path when
    it holds anything but blank lines; otherwise those blank lines are
    folded into the first chunk.

    Args:
        text: Raw markdown

    Returns:
        Ordered chunks with 0-based, inclusive line ranges
    """
    doc = parse(text)
    lines = doc.lines
    boundaries = [h for h in doc.headers if h.level <= MAX_CHUNK_HEADER_LEVEL]

    if not boundaries:
        return [
            ChunkInfo(
                index=0, header_path="", start_line=0, end_line=len(lines) - 1, content=text
            )
        ]

    # (start_line, header_path)
    sections: list[tuple[int, str]] = []
    first_line = boundaries[0].line
    preamble_has_text = any(line.strip() for line in lines[:first_line])
    if first_line > 0 and preamble_has_text:
        sections.append((0, ""))
        sections.append((first_line, boundaries[0].header_path))
    else:
        sections.append((0, boundaries[0].header_path))
    sections.extend((h.line, h.header_path) for h in boundaries[1:])

    chunks: list[ChunkInfo] = []
    for index, (start_line, header_path) in enumerate(sections):
        end_line = sections[index + 1][0] - 1 if index + 1 < len(sections) else len(lines) - 1
        chunks.append(
            ChunkInfo(
                index=index,
                header_path=header_path,
                start_line=start_line,
                end_line=end_line,
                content="\n".join(lines[start_line : end_line + 1]),
            )
        )
    return chunks


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """
    Split a leading '---' delimited YAML block from the body.

    Args:
        text: Raw markdown

    Returns:
        (frontmatter mapping, body). Text without frontmatter, or with
        frontmatter that is not a YAML mapping, is returned unchanged
        with an empty mapping.
    """
    lines = text.split("\n")
    if not lines or not _FRONTMATTER_DELIMITER.match(lines[0]):
        return {}, text

    for index in range(1, len(lines)):
        if _FRONTMATTER_DELIMITER.match(lines[index]):
            try:
                data = yaml.safe_load("\n".join(lines[1:index]))
            except yaml.YAMLError:
                return {}, text
            if not isinstance(data, dict):
                return {}, text
            return data, "\n".join(lines[index + 1 :])

    return {}, text
