"""
Incremental vault indexing.

Turns documents into stored chunk embeddings:

    hash check -> frontmatter -> chunk -> embed -> delete old -> upsert -> status

A file is re-embedded only when the SHA-256 of its raw content differs from
the hash recorded by its last successful indexing, unless forced.
"""

import hashlib
import logging
import threading
import time
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Optional

from vaultrag.config import settings
from vaultrag.errors import ConfigurationError
from vaultrag.retrieval.chunker import chunk_markdown
from vaultrag.retrieval.documents import DocumentSource
from vaultrag.retrieval.embeddings import Embedder
from vaultrag.retrieval.frontmatter import extract_frontmatter
from vaultrag.retrieval.store import IndexStore
from vaultrag.tracing import add_span_attributes, record_exception, traced

logger = logging.getLogger(__name__)

CONTENT_UNCHANGED = "Content unchanged"


@dataclass
class IndexResult:
    """Outcome of indexing one file."""

    file_path: str
    indexed: bool
    chunks: int
    reason: Optional[str] = None


@dataclass
class VaultIndexSummary:
    """Outcome of indexing a whole collection."""

    files_indexed: int = 0
    total_chunks: int = 0
    duration_ms: float = 0.0
    failed: list[str] = field(default_factory=list)
    cancelled: bool = False


def hash_content(content: str) -> str:
    """SHA-256 hex digest of a document's raw content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class VaultIndexer:
    """
    Index documents of one collection into an IndexStore.

    Re-indexing of a given file is serialized; different files may be
    indexed concurrently.

    Example:
        >>> indexer = VaultIndexer(store, embedder, source, collection_id="node")
        >>> indexer.index_file("notes/watershed.md")
        IndexResult(file_path='notes/watershed.md', indexed=True, chunks=3, reason=None)
        >>> indexer.index_vault(changed_only=True).files_indexed
        0
    """

    def __init__(
        self,
        store: IndexStore,
        embedder: Embedder,
        source: Optional[DocumentSource] = None,
        collection_id: Optional[str] = None,
        min_chunk_chars: Optional[int] = None,
        max_chunk_chars: Optional[int] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        """
        Initialize the indexer.

        Args:
            store: Store receiving chunk embeddings and statuses
            embedder: Embedding provider
            source: Document source (required to fetch or list documents)
            collection_id: Collection identifier (default from settings)
            min_chunk_chars: Minimum chunk size (default from settings)
            max_chunk_chars: Maximum chunk size (default from settings)
            max_workers: Concurrent files in index_vault (default from settings)
        """
        self.store = store
        self.embedder = embedder
        self.source = source
        self.collection_id = collection_id or settings.collection_id
        self.min_chunk_chars = min_chunk_chars or settings.min_chunk_chars
        self.max_chunk_chars = max_chunk_chars or settings.max_chunk_chars
        self.max_workers = max_workers or settings.index_workers

        self._file_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._file_locks_guard = threading.Lock()

    @traced("vault.index_file")
    def index_file(
        self,
        file_path: str,
        content: Optional[str] = None,
        force: bool = False,
    ) -> IndexResult:
        """
        Index or reindex a single file.

        Args:
            file_path: Path of the file within the collection
            content: Raw document text (fetched from the source if omitted)
            force: Reindex even when the content hash is unchanged

        Returns:
            IndexResult; ``indexed`` is False with reason "Content unchanged"
            when nothing was written

        Raises:
            ConfigurationError: If content is omitted and no source is set
            NotFoundError: If the source has no such document
            UpstreamError: If fetching or embedding fails
            StoreError: If a store operation fails
        """
        with self._lock_for(file_path):
            if content is None:
                if self.source is None:
                    raise ConfigurationError("A document source is required to fetch file content")
                content = self.source.fetch(file_path)

            content_hash = hash_content(content)

            if not force:
                status = self.store.get_status(self.collection_id, file_path)
                if status is not None and status.content_hash == content_hash:
                    logger.debug(f"Skipping {file_path}: content unchanged")
                    return IndexResult(
                        file_path=file_path,
                        indexed=False,
                        chunks=0,
                        reason=CONTENT_UNCHANGED,
                    )

            frontmatter = extract_frontmatter(content)
            chunks = chunk_markdown(
                frontmatter.body,
                file_path,
                min_chars=self.min_chunk_chars,
                max_chars=self.max_chunk_chars,
                line_offset=frontmatter.line_offset,
            )
            if frontmatter.metadata:
                for chunk in chunks:
                    chunk.metadata["frontmatter"] = frontmatter.metadata

            embeddings = self.embedder.embed_batch([chunk.content for chunk in chunks])

            try:
                self.store.delete_file_embeddings(self.collection_id, file_path)
                for chunk, embedding in zip(chunks, embeddings):
                    self.store.upsert_embedding(
                        self.collection_id,
                        file_path,
                        chunk.index,
                        chunk.content,
                        embedding,
                        chunk.to_metadata(),
                    )
                self.store.put_status(self.collection_id, file_path, content_hash, len(chunks))
            except Exception as e:
                # Entries may be partial here; a missing status forces the next run to reindex.
                logger.warning(f"Write failed for {file_path}, invalidating its index status")
                record_exception(e)
                self.store.delete_status(self.collection_id, file_path)
                raise

        logger.info(f"Indexed {file_path}: {len(chunks)} chunks")
        add_span_attributes(file_path=file_path, chunks=len(chunks))
        return IndexResult(file_path=file_path, indexed=True, chunks=len(chunks))

    @traced("vault.index_vault")
    def index_vault(
        self,
        changed_only: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> VaultIndexSummary:
        """
        Index every document of the collection.

        Files are processed by a bounded worker pool. A failing file is logged
        and recorded in ``failed``; the remaining files are still indexed.

        Args:
            changed_only: Skip files whose content hash is unchanged
            cancel_event: When set, files that have not started are skipped;
                files already in progress complete normally

        Returns:
            VaultIndexSummary counting only files that were (re)indexed

        Raises:
            ConfigurationError: If no document source is set
        """
        if self.source is None:
            raise ConfigurationError("A document source is required to index the vault")

        start = time.perf_counter()
        cancel_event = cancel_event or threading.Event()
        summary = VaultIndexSummary()

        paths = self.source.paths()
        logger.info(
            f"Indexing {len(paths)} files in collection {self.collection_id} "
            f"(changed_only={changed_only}, workers={self.max_workers})"
        )

        # Content is fetched inside each task so an unreadable file fails alone
        def run(path: str) -> Optional[IndexResult]:
            if cancel_event.is_set():
                return None
            return self.index_file(path, force=not changed_only)

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="vault-index") as pool:
            futures: dict[Future, str] = {pool.submit(run, path): path for path in paths}
            try:
                for future in as_completed(futures):
                    path = futures[future]
                    try:
                        result = future.result()
                    except Exception as e:
                        logger.error(f"Error indexing {path}: {e}")
                        summary.failed.append(path)
                        continue

                    if result is not None and result.indexed:
                        summary.files_indexed += 1
                        summary.total_chunks += result.chunks
            except KeyboardInterrupt:
                cancel_event.set()
                for future in futures:
                    future.cancel()
                raise

        summary.cancelled = cancel_event.is_set()
        summary.failed.sort()
        summary.duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"Indexed {summary.files_indexed} files ({summary.total_chunks} chunks, "
            f"{len(summary.failed)} failed) in {summary.duration_ms:.0f}ms"
        )
        return summary

    def _lock_for(self, file_path: str) -> threading.Lock:
        with self._file_locks_guard:
            return self._file_locks[file_path]
