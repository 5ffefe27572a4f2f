"""
Singleton resource management for the store, embedder, indexer and retriever.

Uses the @lru_cache pattern (same as config.py settings singleton) so each
resource is built once per process and shared by every command. The
embedder, and therefore its cache, is shared by the indexer and retriever.

Usage:
    indexer = get_indexer()
    indexer.index_vault()
    save_store()

    # In tests (reset cache)
    clear_resource_cache()
"""

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

from vaultrag.config import settings

if TYPE_CHECKING:
    from vaultrag.retrieval.documents import FilesystemDocumentSource
    from vaultrag.retrieval.embeddings import OpenAIEmbedder
    from vaultrag.retrieval.indexer import VaultIndexer
    from vaultrag.retrieval.retriever import VaultRetriever
    from vaultrag.retrieval.store import FAISSIndexStore

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_store() -> "FAISSIndexStore":
    """
    Get or create the global index store.

    Loads the saved store at settings.index_path when one exists, otherwise
    starts empty.

    Raises:
        StoreError: If a saved store exists but cannot be loaded
    """
    from vaultrag.retrieval.store import STORE_MANIFEST, FAISSIndexStore

    if (settings.index_path / STORE_MANIFEST).exists():
        logger.info(f"Loading index store from {settings.index_path}")
        store = FAISSIndexStore.from_disk(settings.index_path, dimension=settings.embedding_dimension)
        logger.info(f"Index store loaded ({store.size} vectors)")
        return store

    logger.info(f"No saved index store at {settings.index_path}, starting empty")
    return FAISSIndexStore(dimension=settings.embedding_dimension)


@lru_cache(maxsize=1)
def get_embedder() -> "OpenAIEmbedder":
    """
    Get or create the global embedder.

    Raises:
        ConfigurationError: If no API key is configured
    """
    from vaultrag.retrieval.embeddings import OpenAIEmbedder

    logger.info(f"Initializing embedder for model: {settings.embedding_model}")
    return OpenAIEmbedder()


@lru_cache(maxsize=1)
def get_document_source() -> "FilesystemDocumentSource":
    """Get or create the global document source for settings.vault_dir."""
    from vaultrag.retrieval.documents import FilesystemDocumentSource

    return FilesystemDocumentSource(
        settings.vault_dir,
        pattern=settings.vault_file_pattern,
        exclude_patterns=settings.vault_exclude_patterns,
    )


@lru_cache(maxsize=1)
def get_indexer() -> "VaultIndexer":
    """Get or create the global indexer."""
    from vaultrag.retrieval.indexer import VaultIndexer

    return VaultIndexer(
        store=get_store(),
        embedder=get_embedder(),
        source=get_document_source(),
    )


@lru_cache(maxsize=1)
def get_retriever() -> "VaultRetriever":
    """Get or create the global retriever."""
    from vaultrag.retrieval.retriever import VaultRetriever

    return VaultRetriever(store=get_store(), embedder=get_embedder())


def save_store() -> None:
    """
    Persist the global index store to settings.index_path.

    Raises:
        StoreError: If writing fails
    """
    get_store().save(settings.index_path)


def clear_resource_cache() -> None:
    """
    Clear all cached resources.

    Used in tests to reset state between test cases.
    """
    get_store.cache_clear()
    get_embedder.cache_clear()
    get_document_source.cache_clear()
    get_indexer.cache_clear()
    get_retriever.cache_clear()
    logger.debug("Resource cache cleared")
