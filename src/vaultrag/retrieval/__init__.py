"""
Document indexing and retrieval components.

Components:
    - frontmatter: Split the leading metadata block from a document
    - chunker: Heading-aware, size-bounded markdown chunking
    - embeddings: Cached embeddings via an OpenAI-compatible API
    - store: IndexStore contract and FAISS implementation
    - documents: Document sources feeding the indexer
    - indexer: Incremental file and vault indexing
    - retriever: Similarity search and vault statistics
"""

from vaultrag.retrieval.chunker import Chunk, chunk_markdown
from vaultrag.retrieval.documents import FilesystemDocumentSource, VaultDocument
from vaultrag.retrieval.embeddings import EmbeddingCache, OpenAIEmbedder, cosine_similarity
from vaultrag.retrieval.frontmatter import Frontmatter, extract_frontmatter
from vaultrag.retrieval.indexer import IndexResult, VaultIndexer, VaultIndexSummary
from vaultrag.retrieval.retriever import VaultRetriever, VaultStats
from vaultrag.retrieval.store import FAISSIndexStore, IndexStatus, IndexStore, SearchResult

__all__ = [
    "Chunk",
    "chunk_markdown",
    "EmbeddingCache",
    "OpenAIEmbedder",
    "cosine_similarity",
    "FAISSIndexStore",
    "FilesystemDocumentSource",
    "Frontmatter",
    "extract_frontmatter",
    "IndexResult",
    "IndexStatus",
    "IndexStore",
    "SearchResult",
    "VaultDocument",
    "VaultIndexer",
    "VaultIndexSummary",
    "VaultRetriever",
    "VaultStats",
]
