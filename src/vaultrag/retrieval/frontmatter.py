"""
Frontmatter extraction for markdown documents.

Splits a leading ``---`` delimited ``key: value`` block from the document
body. Values are coerced with a fixed precedence:

    1. ``[a, "b"]``   -> list of strings (quotes stripped)
    2. ``true/false`` -> bool
    3. numeric        -> int or float
    4. anything else  -> string with surrounding quotes stripped
"""

import re
from dataclasses import dataclass, field
from typing import Any

_FRONTMATTER_PATTERN = re.compile(r"\A---\n(.*?)\n---\n(.*)\Z", re.DOTALL)
_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_QUOTES_PATTERN = re.compile(r"^[\"']|[\"']$")


@dataclass
class Frontmatter:
    """Result of splitting a document into metadata and body."""

    metadata: dict[str, Any] = field(default_factory=dict)
    """Parsed key/value pairs (empty when the document has no block)."""

    body: str = ""
    """Document text following the block."""

    line_offset: int = 0
    """Number of source lines consumed by the block."""


def extract_frontmatter(text: str) -> Frontmatter:
    """
    Split a document into its frontmatter mapping and body text.

    Never raises: documents without a well-formed block are returned
    unchanged with an empty mapping.

    Args:
        text: Raw document text

    Returns:
        Frontmatter with metadata, remaining body and line offset
    """
    match = _FRONTMATTER_PATTERN.match(text)
    if not match:
        return Frontmatter(metadata={}, body=text, line_offset=0)

    block, body = match.group(1), match.group(2)
    metadata: dict[str, Any] = {}

    for line in block.split("\n"):
        key, sep, raw_value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        metadata[key] = _coerce_value(raw_value.strip())

    # opening delimiter + block lines + closing delimiter
    line_offset = block.count("\n") + 3
    return Frontmatter(metadata=metadata, body=body, line_offset=line_offset)


def _coerce_value(value: str) -> Any:
    """Coerce a raw frontmatter value following the precedence rules."""
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        if not inner.strip():
            return []
        return [_strip_quotes(item.strip()) for item in inner.split(",")]

    if value == "true":
        return True
    if value == "false":
        return False

    if _NUMBER_PATTERN.match(value):
        if any(marker in value for marker in ".eE"):
            return float(value)
        return int(value)

    return _strip_quotes(value)


def _strip_quotes(value: str) -> str:
    return _QUOTES_PATTERN.sub("", value)
