"""
Semantic search and statistics over an indexed vault.

Embeds the query text and delegates nearest-neighbour search to the
IndexStore; results are returned exactly as ranked by the store.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from vaultrag.config import settings
from vaultrag.retrieval.embeddings import Embedder
from vaultrag.retrieval.store import IndexStore, SearchResult
from vaultrag.tracing import add_span_attributes, traced

logger = logging.getLogger(__name__)


@dataclass
class DirectoryStats:
    """Chunk count for a top-level directory."""

    path: str
    chunks: int


@dataclass
class VaultStats:
    """Aggregate statistics for an indexed collection."""

    total_files: int
    total_chunks: int
    last_indexed: Optional[datetime]
    top_directories: list[DirectoryStats] = field(default_factory=list)


class VaultRetriever:
    """
    Query an indexed collection.

    Example:
        >>> retriever = VaultRetriever(store, embedder, collection_id="node")
        >>> for result in retriever.search_vault("salmon habitat", limit=3):
        ...     print(result.file_path, result.similarity)
    """

    def __init__(
        self,
        store: IndexStore,
        embedder: Embedder,
        collection_id: Optional[str] = None,
        top_directories: Optional[int] = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.collection_id = collection_id or settings.collection_id
        self.top_directories = top_directories or settings.stats_top_directories

    @traced("vault.search")
    def search_vault(
        self,
        query: str,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> list[SearchResult]:
        """
        Search the collection for chunks similar to a query.

        Args:
            query: Natural-language query
            limit: Maximum number of results (default from settings)
            threshold: Minimum cosine similarity (default from settings)

        Returns:
            Results sorted by similarity descending

        Raises:
            ValueError: If the query is empty or limit < 1
            UpstreamError: If embedding the query fails
            StoreError: If the store search fails
        """
        if not query or not query.strip():
            raise ValueError("query must not be empty")

        limit = settings.search_limit if limit is None else limit
        threshold = settings.search_threshold if threshold is None else threshold
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")

        query_embedding = self.embedder.embed(query)
        results = self.store.search(self.collection_id, query_embedding, limit, threshold)

        logger.debug(f"Search returned {len(results)} results (limit={limit}, threshold={threshold})")
        add_span_attributes(query=query, results=len(results))
        return results

    def vault_stats(self) -> VaultStats:
        """
        Summarize the indexed collection.

        Returns:
            VaultStats with file/chunk totals, the last update time and the
            directories holding the most chunks
        """
        store_stats = self.store.stats(self.collection_id)
        counts = store_stats.file_chunk_counts

        by_directory: dict[str, int] = {}
        for file_path, chunks in counts.items():
            directory = file_path.split("/", 1)[0] + "/"
            by_directory[directory] = by_directory.get(directory, 0) + chunks

        ranked = sorted(by_directory.items(), key=lambda item: (-item[1], item[0]))
        return VaultStats(
            total_files=len(counts),
            total_chunks=sum(counts.values()),
            last_indexed=store_stats.last_indexed,
            top_directories=[
                DirectoryStats(path=path, chunks=chunks)
                for path, chunks in ranked[: self.top_directories]
            ],
        )
