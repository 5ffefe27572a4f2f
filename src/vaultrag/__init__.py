"""
vaultrag: Incremental indexing and semantic search for markdown vaults

This package turns a collection of markdown documents into a searchable
vector index, re-embedding only the files whose content changed.

Key Components:
    - retrieval: Frontmatter, chunking, embeddings, store, indexer, retriever
    - tracing: Arize Phoenix observability integration
    - cli: Typer command-line interface

Example:
    >>> from vaultrag.retrieval.resources import get_indexer, get_retriever
    >>> get_indexer().index_vault(changed_only=True)
    >>> results = get_retriever().search_vault("watershed restoration")
"""

__version__ = "0.1.0"

from vaultrag.config import settings

__all__ = [
    "__version__",
    "settings",
]
