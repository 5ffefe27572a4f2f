"""
Vector index store for chunk embeddings and per-file indexing status.

Defines the narrow contract the indexer and retriever depend on, and a
FAISS-backed implementation that keeps one inner-product index per
collection over L2-normalized vectors (inner product == cosine similarity).
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

import faiss
import numpy as np
from numpy.typing import ArrayLike, NDArray

from vaultrag.errors import StoreError

logger = logging.getLogger(__name__)

STORE_MANIFEST = "store.json"
_TMP_SUFFIX = ".tmp"


@dataclass(frozen=True)
class IndexStatus:
    """Last successful indexing of one file."""

    content_hash: str
    chunk_count: int
    indexed_at: datetime


@dataclass
class SearchResult:
    """A chunk returned by similarity search."""

    file_path: str
    chunk_index: int
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StoreStats:
    """Aggregate counts for one collection."""

    file_chunk_counts: dict[str, int] = field(default_factory=dict)
    last_indexed: Optional[datetime] = None


class IndexStore(Protocol):
    """Persistence and similarity search for chunk embeddings."""

    def upsert_embedding(
        self,
        collection: str,
        file_path: str,
        chunk_index: int,
        content: str,
        embedding: ArrayLike,
        metadata: dict[str, Any],
    ) -> None: ...

    def delete_file_embeddings(self, collection: str, file_path: str) -> int: ...

    def search(
        self,
        collection: str,
        query_embedding: ArrayLike,
        limit: int,
        threshold: float,
    ) -> list[SearchResult]: ...

    def get_status(self, collection: str, file_path: str) -> Optional[IndexStatus]: ...

    def put_status(self, collection: str, file_path: str, content_hash: str, chunk_count: int) -> None: ...

    def delete_status(self, collection: str, file_path: str) -> None: ...

    def stats(self, collection: str) -> StoreStats: ...


@dataclass
class _Entry:
    id: int
    collection: str
    file_path: str
    chunk_index: int
    content: str
    metadata: dict[str, Any]
    updated_at: datetime


class FAISSIndexStore:
    """
    FAISS-based index store.

    Each collection has its own IndexIDMap2(IndexFlatIP); entry payloads and
    file statuses are kept alongside and persisted as JSON.

    Example:
        >>> store = FAISSIndexStore(dimension=1536)
        >>> store.upsert_embedding("node", "notes/a.md", 0, "text", vector, {})
        >>> results = store.search("node", query_vector, limit=5, threshold=0.7)
        >>> store.save("data/index")
    """

    def __init__(self, dimension: int) -> None:
        """
        Initialize an empty store.

        Args:
            dimension: Vector dimension accepted by the store
        """
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension
        self._indexes: dict[str, faiss.IndexIDMap2] = {}
        self._entries: dict[int, _Entry] = {}
        self._keys: dict[tuple[str, str, int], int] = {}
        self._statuses: dict[tuple[str, str], IndexStatus] = {}
        self._next_id = 0
        self._lock = threading.RLock()

    @property
    def size(self) -> int:
        """Number of vectors across all collections."""
        with self._lock:
            return len(self._entries)

    def upsert_embedding(
        self,
        collection: str,
        file_path: str,
        chunk_index: int,
        content: str,
        embedding: ArrayLike,
        metadata: dict[str, Any],
    ) -> None:
        """
        Insert or replace the entry for (collection, file_path, chunk_index).

        Raises:
            StoreError: If the embedding has the wrong dimension
        """
        vector = self._as_matrix(embedding)
        key = (collection, file_path, chunk_index)

        with self._lock:
            index = self._index_for(collection)
            old_id = self._keys.get(key)
            if old_id is not None:
                index.remove_ids(np.array([old_id], dtype=np.int64))
                del self._entries[old_id]

            entry_id = self._next_id
            self._next_id += 1
            index.add_with_ids(vector, np.array([entry_id], dtype=np.int64))
            self._entries[entry_id] = _Entry(
                id=entry_id,
                collection=collection,
                file_path=file_path,
                chunk_index=chunk_index,
                content=content,
                metadata=dict(metadata),
                updated_at=datetime.now(timezone.utc),
            )
            self._keys[key] = entry_id

    def delete_file_embeddings(self, collection: str, file_path: str) -> int:
        """
        Delete every entry of a file.

        Returns:
            Number of deleted entries
        """
        with self._lock:
            ids = [
                entry_id
                for (coll, path, _), entry_id in self._keys.items()
                if coll == collection and path == file_path
            ]
            if not ids:
                return 0

            self._indexes[collection].remove_ids(np.array(ids, dtype=np.int64))
            for entry_id in ids:
                entry = self._entries.pop(entry_id)
                del self._keys[(entry.collection, entry.file_path, entry.chunk_index)]

        logger.debug(f"Deleted {len(ids)} entries for {collection}:{file_path}")
        return len(ids)

    def search(
        self,
        collection: str,
        query_embedding: ArrayLike,
        limit: int,
        threshold: float,
    ) -> list[SearchResult]:
        """
        Search for the chunks most similar to a query vector.

        Args:
            collection: Collection to search
            query_embedding: Query vector of shape (dimension,)
            limit: Maximum number of results
            threshold: Minimum cosine similarity

        Returns:
            At most ``limit`` results with similarity >= threshold,
            sorted by similarity descending

        Raises:
            StoreError: If the query has the wrong dimension
        """
        query = self._as_matrix(query_embedding)

        with self._lock:
            index = self._indexes.get(collection)
            if index is None or index.ntotal == 0 or limit <= 0:
                return []

            k = min(limit, int(index.ntotal))
            scores, ids = index.search(query, k)

            results: list[SearchResult] = []
            for score, entry_id in zip(scores[0], ids[0]):
                if entry_id < 0 or float(score) < threshold:
                    continue
                entry = self._entries[int(entry_id)]
                results.append(
                    SearchResult(
                        file_path=entry.file_path,
                        chunk_index=entry.chunk_index,
                        content=entry.content,
                        similarity=float(score),
                        metadata=dict(entry.metadata),
                    )
                )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results

    def get_status(self, collection: str, file_path: str) -> Optional[IndexStatus]:
        with self._lock:
            return self._statuses.get((collection, file_path))

    def put_status(self, collection: str, file_path: str, content_hash: str, chunk_count: int) -> None:
        with self._lock:
            self._statuses[(collection, file_path)] = IndexStatus(
                content_hash=content_hash,
                chunk_count=chunk_count,
                indexed_at=datetime.now(timezone.utc),
            )

    def delete_status(self, collection: str, file_path: str) -> None:
        with self._lock:
            self._statuses.pop((collection, file_path), None)

    def stats(self, collection: str) -> StoreStats:
        """Chunk counts per file and the most recent entry update."""
        counts: dict[str, int] = {}
        last_indexed: Optional[datetime] = None
        with self._lock:
            for entry in self._entries.values():
                if entry.collection != collection:
                    continue
                counts[entry.file_path] = counts.get(entry.file_path, 0) + 1
                if last_indexed is None or entry.updated_at > last_indexed:
                    last_indexed = entry.updated_at
        return StoreStats(file_chunk_counts=counts, last_indexed=last_indexed)

    def save(self, path: str | Path) -> None:
        """
        Save indexes, entries and statuses to a directory.

        Raises:
            StoreError: If writing fails
        """
        path = Path(path)
        with self._lock:
            try:
                path.mkdir(parents=True, exist_ok=True)
                index_files: dict[str, str] = {}
                staged: list[tuple[Path, Path]] = []
                for i, (collection, index) in enumerate(sorted(self._indexes.items())):
                    index_file = f"collection_{i}.index"
                    tmp = path / f"{index_file}{_TMP_SUFFIX}"
                    faiss.write_index(index, str(tmp))
                    staged.append((tmp, path / index_file))
                    index_files[collection] = index_file

                manifest = {
                    "dimension": self.dimension,
                    "next_id": self._next_id,
                    "indexes": index_files,
                    "entries": [
                        {
                            "id": entry.id,
                            "collection": entry.collection,
                            "file_path": entry.file_path,
                            "chunk_index": entry.chunk_index,
                            "content": entry.content,
                            "metadata": entry.metadata,
                            "updated_at": entry.updated_at.isoformat(),
                        }
                        for entry in self._entries.values()
                    ],
                    "statuses": [
                        {
                            "collection": collection,
                            "file_path": file_path,
                            "content_hash": status.content_hash,
                            "chunk_count": status.chunk_count,
                            "indexed_at": status.indexed_at.isoformat(),
                        }
                        for (collection, file_path), status in self._statuses.items()
                    ],
                }
                tmp = path / f"{STORE_MANIFEST}{_TMP_SUFFIX}"
                with tmp.open("w", encoding="utf-8") as f:
                    json.dump(manifest, f, indent=2, ensure_ascii=False)
                staged.append((tmp, path / STORE_MANIFEST))

                # Manifest last: it only ever names fully written index files
                for tmp, target in staged:
                    os.replace(tmp, target)
            except (OSError, RuntimeError, TypeError) as e:
                raise StoreError(f"Failed to save index store to {path}: {e}") from e

        logger.info(f"Saved index store to {path} ({self.size} vectors)")

    def load(self, path: str | Path) -> None:
        """
        Replace the store's contents with a saved store.

        Raises:
            FileNotFoundError: If no saved store exists at path
            StoreError: If the saved store is unreadable or has another dimension
        """
        path = Path(path)
        manifest_file = path / STORE_MANIFEST
        if not manifest_file.exists():
            raise FileNotFoundError(f"Index store manifest not found: {manifest_file}")

        try:
            with manifest_file.open(encoding="utf-8") as f:
                manifest = json.load(f)

            if manifest["dimension"] != self.dimension:
                raise StoreError(
                    f"Saved store has dimension {manifest['dimension']}, expected {self.dimension}"
                )

            indexes = {
                collection: faiss.read_index(str(path / index_file))
                for collection, index_file in manifest["indexes"].items()
            }
            entries = {
                item["id"]: _Entry(
                    id=item["id"],
                    collection=item["collection"],
                    file_path=item["file_path"],
                    chunk_index=item["chunk_index"],
                    content=item["content"],
                    metadata=item["metadata"],
                    updated_at=datetime.fromisoformat(item["updated_at"]),
                )
                for item in manifest["entries"]
            }
            statuses = {
                (item["collection"], item["file_path"]): IndexStatus(
                    content_hash=item["content_hash"],
                    chunk_count=item["chunk_count"],
                    indexed_at=datetime.fromisoformat(item["indexed_at"]),
                )
                for item in manifest["statuses"]
            }
            next_id = int(manifest["next_id"])
        except (OSError, RuntimeError, ValueError, KeyError, TypeError) as e:
            raise StoreError(f"Failed to load index store from {path}: {e}") from e

        with self._lock:
            self._indexes = indexes
            self._entries = entries
            self._keys = {(e.collection, e.file_path, e.chunk_index): e.id for e in entries.values()}
            self._statuses = statuses
            self._next_id = next_id

    @classmethod
    def from_disk(cls, path: str | Path, dimension: int) -> "FAISSIndexStore":
        """
        Create a store from saved files.

        Args:
            path: Directory passed to save()
            dimension: Expected vector dimension

        Returns:
            FAISSIndexStore with loaded data
        """
        store = cls(dimension=dimension)
        store.load(path)
        return store

    def _index_for(self, collection: str) -> faiss.IndexIDMap2:
        index = self._indexes.get(collection)
        if index is None:
            index = faiss.IndexIDMap2(faiss.IndexFlatIP(self.dimension))
            self._indexes[collection] = index
        return index

    def _as_matrix(self, embedding: ArrayLike) -> NDArray[np.float32]:
        """Validate a vector and return it as a normalized (1, dimension) matrix."""
        vector = np.asarray(embedding, dtype=np.float32).reshape(1, -1)
        if vector.shape[1] != self.dimension:
            raise StoreError(
                f"Embedding must have dimension {self.dimension}, got {vector.shape[1]}"
            )
        norm = np.linalg.norm(vector, axis=1, keepdims=True)
        # Avoid division by zero
        norm = np.where(norm == 0, 1, norm)
        return np.ascontiguousarray(vector / norm, dtype=np.float32)
