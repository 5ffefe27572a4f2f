"""
Document sources feeding the indexer.

Only local vault directories are implemented; any other origin plugs in by
satisfying the DocumentSource protocol.
"""

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from vaultrag.errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class VaultDocument:
    """A document listed by a source."""

    path: str
    content: str


class DocumentSource(Protocol):
    """Fetches documents of one collection."""

    def fetch(self, path: str) -> str: ...

    def paths(self) -> list[str]: ...

    def list(self) -> list[VaultDocument]: ...


class FilesystemDocumentSource:
    """
    Markdown vault stored in a local directory.

    Paths are relative to the root and use forward slashes.

    Example:
        >>> source = FilesystemDocumentSource("vault")
        >>> source.paths()
        ['notes/watershed.md', 'readme.md']
    """

    def __init__(
        self,
        root: str | Path,
        pattern: str = "*.md",
        exclude_patterns: Sequence[str] = (),
    ) -> None:
        """
        Initialize the source.

        Args:
            root: Vault root directory
            pattern: Glob pattern matched against file names
            exclude_patterns: Glob patterns matched against relative paths
        """
        self.root = Path(root).resolve()
        self.pattern = pattern
        self.exclude_patterns = list(exclude_patterns)

    def fetch(self, path: str) -> str:
        """
        Read one document.

        Raises:
            NotFoundError: If the file does not exist or lies outside the root
            UpstreamError: If the file cannot be read
        """
        file_path = (self.root / path).resolve()
        if not file_path.is_relative_to(self.root) or not file_path.is_file():
            raise NotFoundError(f"Document not found: {path}")

        try:
            return file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise UpstreamError(f"Failed to read {path}: {e}") from e

    def paths(self) -> list[str]:
        """
        List the relative paths of every matching document, sorted.

        Raises:
            NotFoundError: If the root directory does not exist
        """
        if not self.root.is_dir():
            raise NotFoundError(f"Vault directory not found: {self.root}")

        paths: list[str] = []
        for file_path in sorted(self.root.rglob(self.pattern)):
            if not file_path.is_file():
                continue
            relative = file_path.relative_to(self.root).as_posix()
            if self._is_excluded(relative):
                logger.debug(f"Skipping excluded document {relative}")
                continue
            paths.append(relative)

        return paths

    def list(self) -> list[VaultDocument]:
        """
        List every matching document with its content.

        Raises:
            NotFoundError: If the root directory does not exist
            UpstreamError: If any listed file cannot be read
        """
        return [VaultDocument(path=path, content=self.fetch(path)) for path in self.paths()]

    def _is_excluded(self, relative: str) -> bool:
        return any(fnmatch.fnmatch(relative, pattern) for pattern in self.exclude_patterns)
