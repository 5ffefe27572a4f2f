"""
Heading-aware markdown chunking.

Splits markdown documents into size-bounded chunks while preserving:
    - The nearest enclosing heading and its level
    - The full heading path (outermost heading first)
    - Source line bounds of the section each chunk came from
    - Chunk position/index within the file

Sections shorter than ``min_chars`` are dropped. Sections longer than
``max_chars`` are split with a recursive character splitter at paragraph
boundaries first, then at sentence boundaries, then between words.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from langchain_text_splitters import RecursiveCharacterTextSplitter

MIN_CHUNK_CHARS = 200
MAX_CHUNK_CHARS = 4000

_HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$")

# Tried in order: blank line, sentence end, any whitespace, any character
_SPLIT_SEPARATORS = [r"\n[ \t]*\n", r"(?<=[.!?])\s+", r"\s+", ""]


@dataclass
class Chunk:
    """A document chunk with heading context."""

    index: int
    """Zero-based ordinal of the chunk within its file."""

    content: str
    """The text content of the chunk."""

    heading: Optional[str] = None
    """Text of the nearest enclosing heading."""

    heading_level: Optional[int] = None
    """Level (1-6) of the nearest enclosing heading."""

    heading_path: list[str] = field(default_factory=list)
    """Ancestor heading texts, outermost first."""

    start_line: int = 0
    """Zero-based source line where the chunk's section starts."""

    end_line: int = 0
    """Zero-based source line where the chunk's section ends."""

    metadata: dict[str, Any] = field(default_factory=dict)
    """Extra metadata carried into the index entry (e.g. frontmatter)."""

    def to_metadata(self) -> dict[str, Any]:
        """Build the opaque metadata payload stored alongside the chunk."""
        payload: dict[str, Any] = dict(self.metadata)
        if self.heading is not None:
            payload["heading"] = self.heading
        if self.heading_level is not None:
            payload["heading_level"] = self.heading_level
        if self.heading_path:
            payload["heading_path"] = list(self.heading_path)
        payload["start_line"] = self.start_line
        payload["end_line"] = self.end_line
        return payload


@dataclass
class _Section:
    lines: list[str]
    heading: Optional[str]
    heading_level: Optional[int]
    heading_path: list[str]
    start_line: int


def chunk_markdown(
    text: str,
    file_path: str,
    min_chars: int = MIN_CHUNK_CHARS,
    max_chars: int = MAX_CHUNK_CHARS,
    line_offset: int = 0,
) -> list[Chunk]:
    """
    Split markdown text into heading-aware chunks.

    The first emitted chunk is prefixed with a ``File: <path>`` context line.
    The output is fully determined by the arguments.

    Args:
        text: Markdown body to chunk
        file_path: Identifier of the source file
        min_chars: Minimum chunk length; shorter sections are dropped
        max_chars: Maximum chunk length before splitting
        line_offset: Added to every line number (e.g. lines used by frontmatter)

    Returns:
        Ordered list of Chunk objects with contiguous indices

    Raises:
        ValueError: If the size bounds are invalid
    """
    if min_chars <= 0:
        raise ValueError(f"min_chars must be positive, got {min_chars}")
    if max_chars < min_chars:
        raise ValueError(
            f"max_chars ({max_chars}) must not be less than min_chars ({min_chars})"
        )

    if not text or not text.strip():
        return []

    lines = text.split("\n")
    chunks: list[Chunk] = []
    heading_stack: list[str] = []
    section = _Section(lines=[], heading=None, heading_level=None, heading_path=[], start_line=0)

    for line_no, line in enumerate(lines):
        match = _HEADING_PATTERN.match(line)
        if not match:
            section.lines.append(line)
            continue

        if section.lines:
            _flush_section(section, line_no - 1, chunks, min_chars, max_chars, line_offset)

        level = len(match.group(1))
        heading_text = match.group(2).strip()
        while len(heading_stack) >= level:
            heading_stack.pop()
        heading_stack.append(heading_text)

        section = _Section(
            lines=[line],
            heading=heading_text,
            heading_level=level,
            heading_path=list(heading_stack),
            start_line=line_no,
        )

    if section.lines:
        _flush_section(section, len(lines) - 1, chunks, min_chars, max_chars, line_offset)

    if chunks:
        chunks[0].content = f"File: {file_path}\n\n{chunks[0].content}"

    return chunks


def _flush_section(
    section: _Section,
    end_line: int,
    chunks: list[Chunk],
    min_chars: int,
    max_chars: int,
    line_offset: int,
) -> None:
    """Emit the chunk(s) for a closed section, dropping undersized ones."""
    text = "\n".join(section.lines).strip()
    if len(text) < min_chars:
        return

    pieces = _split_oversized(text, min_chars, max_chars) if len(text) > max_chars else [text]
    for piece in pieces:
        chunks.append(
            Chunk(
                index=len(chunks),
                content=piece,
                heading=section.heading,
                heading_level=section.heading_level,
                heading_path=list(section.heading_path),
                start_line=section.start_line + line_offset,
                end_line=end_line + line_offset,
            )
        )


def _split_oversized(text: str, min_chars: int, max_chars: int) -> list[str]:
    """
    Split an oversized section into pieces of ``min_chars`` to ``max_chars``.

    The splitter packs paragraphs, then the sentences of paragraphs that are
    too long, then words, into pieces no longer than ``max_chars``. Pieces
    that come out shorter than ``min_chars`` are merged into a neighbour, so
    nothing is dropped.
    """
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=max_chars,
        chunk_overlap=0,
        length_function=len,
        separators=_SPLIT_SEPARATORS,
        is_separator_regex=True,
        keep_separator=True,
    )
    spans = _locate(text, splitter.split_text(text))
    return [text[start:end] for start, end in _merge_undersized(text, spans, min_chars, max_chars)]


def _locate(text: str, pieces: list[str]) -> list[tuple[int, int]]:
    """Map split pieces back to (start, end) offsets in the source text."""
    spans: list[tuple[int, int]] = []
    cursor = 0
    for piece in pieces:
        start = text.find(piece, cursor)
        if start < 0:
            raise ValueError(f"Split piece not found in section text: {piece[:40]!r}")
        cursor = start + len(piece)
        spans.append((start, cursor))
    return spans


def _merge_undersized(
    text: str,
    spans: list[tuple[int, int]],
    min_chars: int,
    max_chars: int,
) -> list[tuple[int, int]]:
    """Fold spans shorter than ``min_chars`` into the neighbouring span."""
    merged: list[tuple[int, int]] = []
    for start, end in spans:
        if merged and (end - start < min_chars or merged[-1][1] - merged[-1][0] < min_chars):
            prev_start = merged[-1][0]
            if end - prev_start <= max_chars:
                merged[-1] = (prev_start, end)
                continue
            halves = _balanced_cut(text, prev_start, end, min_chars, max_chars)
            if halves is not None:
                merged[-1:] = list(halves)
                continue
        merged.append((start, end))
    return merged


def _balanced_cut(
    text: str,
    start: int,
    end: int,
    min_chars: int,
    max_chars: int,
) -> Optional[tuple[tuple[int, int], tuple[int, int]]]:
    """
    Cut ``text[start:end]`` into two spans whose stripped lengths both lie in
    ``[min_chars, max_chars]``.

    The latest whitespace run that satisfies the bounds wins; failing that,
    the text is cut between two non-whitespace characters. Returns None when
    no cut satisfies both bounds.
    """
    length = end - start

    # Whitespace runs are dropped from both halves.
    for cut in range(start + min(max_chars, length - min_chars), start + min_chars - 1, -1):
        if not text[cut].isspace() or text[cut - 1].isspace():
            continue
        resume = cut
        while text[resume].isspace():
            resume += 1
        if min_chars <= end - resume <= max_chars:
            return (start, cut), (resume, end)

    low = start + max(min_chars, length - max_chars)
    high = start + min(max_chars, length - min_chars)
    for cut in range(high, low - 1, -1):
        if not text[cut].isspace() and not text[cut - 1].isspace():
            return (start, cut), (cut, end)

    return None
