"""
Unit tests for resource caching in retrieval.resources module.

Tests the singleton caching behavior of:
    - get_store()
    - get_embedder()
    - get_indexer() / get_retriever()
    - save_store() and clear_resource_cache()
"""

import pytest
from pydantic import SecretStr

from conftest import TEST_DIMENSION, deterministic_vector
from vaultrag.errors import ConfigurationError
from vaultrag.retrieval import resources
from vaultrag.retrieval.store import STORE_MANIFEST, FAISSIndexStore


@pytest.fixture
def resource_settings(monkeypatch, tmp_path, vault_dir):
    """Point the global settings at temporary directories."""
    settings = resources.settings
    monkeypatch.setattr(settings, "openai_api_key", SecretStr("test-api-key"))
    monkeypatch.setattr(settings, "embedding_dimension", TEST_DIMENSION)
    monkeypatch.setattr(settings, "vault_dir", vault_dir)
    monkeypatch.setattr(settings, "index_path", tmp_path / "index")
    monkeypatch.setattr(settings, "collection_id", "test-node")

    resources.clear_resource_cache()
    yield settings
    resources.clear_resource_cache()


@pytest.mark.unit
class TestResourceCaching:
    """Test that resource getters implement proper caching."""

    def test_get_store_starts_empty(self, resource_settings):
        store = resources.get_store()

        assert isinstance(store, FAISSIndexStore)
        assert store.size == 0
        assert store.dimension == TEST_DIMENSION

    def test_get_store_caches_result(self, resource_settings):
        assert resources.get_store() is resources.get_store()

    def test_get_store_loads_saved_store(self, resource_settings):
        saved = FAISSIndexStore(dimension=TEST_DIMENSION)
        saved.upsert_embedding("test-node", "a.md", 0, "alpha", deterministic_vector("alpha"), {})
        saved.save(resource_settings.index_path)

        store = resources.get_store()

        assert store.size == 1

    def test_get_embedder_caches_result(self, resource_settings):
        embedder = resources.get_embedder()

        assert embedder is resources.get_embedder()
        assert embedder.dimension == TEST_DIMENSION

    def test_get_embedder_requires_key(self, resource_settings, monkeypatch):
        monkeypatch.setattr(resource_settings, "openai_api_key", None)

        with pytest.raises(ConfigurationError):
            resources.get_embedder()

    def test_indexer_and_retriever_share_resources(self, resource_settings):
        indexer = resources.get_indexer()
        retriever = resources.get_retriever()

        assert indexer.store is retriever.store
        assert indexer.embedder is retriever.embedder
        assert indexer.collection_id == retriever.collection_id == "test-node"
        assert indexer.source.root == resource_settings.vault_dir.resolve()

    def test_save_store(self, resource_settings):
        resources.get_store().put_status("test-node", "a.md", "hash", 0)

        resources.save_store()

        assert (resource_settings.index_path / STORE_MANIFEST).exists()

    def test_clear_resource_cache(self, resource_settings):
        store = resources.get_store()

        resources.clear_resource_cache()

        assert resources.get_store() is not store
