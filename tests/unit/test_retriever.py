"""Unit tests for retrieval.retriever module."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import numpy as np
import pytest

from conftest import deterministic_vector
from vaultrag.retrieval.retriever import DirectoryStats, VaultRetriever
from vaultrag.retrieval.store import SearchResult, StoreStats

COLLECTION = "test-node"


def populate(store, counts: dict[str, int]) -> None:
    for path, chunks in counts.items():
        for i in range(chunks):
            text = f"{path}#{i}"
            store.upsert_embedding(COLLECTION, path, i, text, deterministic_vector(text), {})


@pytest.mark.unit
class TestSearchVault:
    """Tests for VaultRetriever.search_vault."""

    def test_finds_matching_chunk(self, store, fake_embedder):
        populate(store, {"a.md": 2, "b.md": 1})
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION)

        # FakeEmbedder maps equal text to equal vectors
        results = retriever.search_vault("a.md#1", limit=3, threshold=0.99)

        assert len(results) == 1
        assert results[0].file_path == "a.md"
        assert results[0].chunk_index == 1
        assert results[0].similarity == pytest.approx(1.0, abs=1e-5)
        assert fake_embedder.embedded == ["a.md#1"]

    def test_delegates_to_store(self, fake_embedder):
        store = MagicMock()
        expected = [SearchResult("a.md", 0, "text", 0.9)]
        store.search.return_value = expected
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION)

        results = retriever.search_vault("salmon", limit=7, threshold=0.5)

        assert results is expected
        collection, query_embedding, limit, threshold = store.search.call_args.args
        assert collection == COLLECTION
        assert np.allclose(query_embedding, deterministic_vector("salmon"))
        assert (limit, threshold) == (7, 0.5)

    def test_defaults_from_settings(self, fake_embedder):
        from vaultrag.config import settings

        store = MagicMock()
        store.search.return_value = []
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION)

        retriever.search_vault("salmon")

        _, _, limit, threshold = store.search.call_args.args
        assert limit == settings.search_limit
        assert threshold == settings.search_threshold

    def test_limit_and_order(self, store, fake_embedder):
        populate(store, {f"{i}.md": 1 for i in range(10)})
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION)

        results = retriever.search_vault("anything", limit=4, threshold=-1.0)

        assert len(results) == 4
        sims = [r.similarity for r in results]
        assert sims == sorted(sims, reverse=True)

    def test_empty_store(self, store, fake_embedder):
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION)

        assert retriever.search_vault("anything", threshold=-1.0) == []

    def test_empty_query(self, store, fake_embedder):
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION)

        with pytest.raises(ValueError):
            retriever.search_vault("   ")
        assert fake_embedder.embedded == []

    def test_invalid_limit(self, store, fake_embedder):
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION)

        with pytest.raises(ValueError):
            retriever.search_vault("salmon", limit=0)


@pytest.mark.unit
class TestVaultStats:
    """Tests for VaultRetriever.vault_stats."""

    def test_totals_and_directories(self, store, fake_embedder):
        populate(
            store,
            {
                "watersheds/salmon.md": 3,
                "watersheds/estuary.md": 1,
                "governance/commons.md": 2,
                "readme.md": 1,
            },
        )
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION)

        stats = retriever.vault_stats()

        assert stats.total_files == 4
        assert stats.total_chunks == 7
        assert stats.last_indexed is not None
        assert stats.top_directories == [
            DirectoryStats(path="watersheds/", chunks=4),
            DirectoryStats(path="governance/", chunks=2),
            DirectoryStats(path="readme.md/", chunks=1),
        ]

    def test_top_directories_capped(self, fake_embedder):
        store = MagicMock()
        store.stats.return_value = StoreStats(
            file_chunk_counts={f"dir{i:02d}/note.md": i + 1 for i in range(15)},
            last_indexed=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION, top_directories=10)

        stats = retriever.vault_stats()

        assert len(stats.top_directories) == 10
        assert stats.top_directories[0] == DirectoryStats(path="dir14/", chunks=15)
        assert stats.top_directories[-1] == DirectoryStats(path="dir05/", chunks=6)
        assert stats.total_files == 15

    def test_ties_sorted_by_path(self, fake_embedder):
        store = MagicMock()
        store.stats.return_value = StoreStats(file_chunk_counts={"b/x.md": 2, "a/y.md": 2})
        retriever = VaultRetriever(store, fake_embedder, collection_id=COLLECTION)

        paths = [d.path for d in retriever.vault_stats().top_directories]

        assert paths == ["a/", "b/"]

    def test_empty_collection(self, store, fake_embedder):
        stats = VaultRetriever(store, fake_embedder, collection_id=COLLECTION).vault_stats()

        assert stats.total_files == 0
        assert stats.total_chunks == 0
        assert stats.last_indexed is None
        assert stats.top_directories == []
