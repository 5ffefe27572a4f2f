"""
Pytest configuration and shared fixtures.

Provides common fixtures for:
    - Configuration with test values
    - A deterministic in-process embedder
    - Sample markdown documents and a temporary vault directory
    - FAISS-backed index stores
"""

import hashlib
import threading
from pathlib import Path
from typing import Sequence
from unittest.mock import patch

import numpy as np
import pytest

TEST_DIMENSION = 8


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def mock_settings():
    """Provide test settings without requiring .env file."""
    with patch.dict(
        "os.environ",
        {
            "OPENAI_API_KEY": "test-api-key",
            "EMBEDDING_MODEL": "text-embedding-3-small",
            "EMBEDDING_DIMENSION": "8",
            "MIN_CHUNK_CHARS": "50",
            "MAX_CHUNK_CHARS": "400",
            "COLLECTION_ID": "test-node",
            "ENABLE_TRACING": "false",
        },
    ):
        from vaultrag.config import Settings
        yield Settings()


# =============================================================================
# Embedding Fixtures
# =============================================================================

def deterministic_vector(text: str, dimension: int = TEST_DIMENSION) -> np.ndarray:
    """Stable pseudo-random unit vector derived from the text."""
    seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
    rng = np.random.default_rng(seed)
    vector = rng.normal(size=dimension).astype(np.float32)
    return vector / np.linalg.norm(vector)


class FakeEmbedder:
    """In-process embedder that records every text it embeds."""

    def __init__(self, dimension: int = TEST_DIMENSION) -> None:
        self.dimension = dimension
        self.embedded: list[str] = []
        self.batch_calls = 0
        self._lock = threading.Lock()

    def embed(self, text: str) -> np.ndarray:
        with self._lock:
            self.embedded.append(text)
        return deterministic_vector(text, self.dimension)

    def embed_batch(self, texts: Sequence[str]) -> np.ndarray:
        with self._lock:
            self.batch_calls += 1
            self.embedded.extend(texts)
        if not texts:
            return np.empty((0, self.dimension), dtype=np.float32)
        return np.vstack([deterministic_vector(text, self.dimension) for text in texts])


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


def embedding_response(texts: list[str], dimension: int = TEST_DIMENSION) -> dict:
    """Body of an OpenAI-style embeddings response for the given inputs."""
    return {
        "object": "list",
        "model": "text-embedding-3-small",
        "data": [
            {"object": "embedding", "index": i, "embedding": deterministic_vector(text, dimension).tolist()}
            for i, text in enumerate(texts)
        ],
    }


# =============================================================================
# Sample Data Fixtures
# =============================================================================

def paragraph(topic: str, sentences: int = 4) -> str:
    """Readable filler paragraph of roughly 60 characters per sentence."""
    return " ".join(
        f"The {topic} section describes observation number {i} in detail." for i in range(sentences)
    )


@pytest.fixture
def sample_markdown_files() -> dict[str, str]:
    """Provide a small bioregional vault."""
    return {
        "watersheds/salmon.md": f"""---
title: Salmon Runs
tags: [rivers, "fish"]
published: true
---
# Salmon Runs

{paragraph("salmon")}

## Spawning Grounds

{paragraph("spawning")}

## Threats

{paragraph("threats")}
""",
        "watersheds/estuary.md": f"""# Estuary

{paragraph("estuary")}
""",
        "governance/commons.md": f"""# Commons

{paragraph("commons")}

## Stewardship

{paragraph("stewardship")}
""",
        "readme.md": "# Vault\n\nShort.\n",
    }


@pytest.fixture
def vault_dir(tmp_path: Path, sample_markdown_files) -> Path:
    """Provide temporary vault directory with sample markdown files."""
    root = tmp_path / "vault"
    for relative, content in sample_markdown_files.items():
        file_path = root / relative
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    return root


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def store():
    """Provide an empty FAISS store with the test dimension."""
    from vaultrag.retrieval.store import FAISSIndexStore

    return FAISSIndexStore(dimension=TEST_DIMENSION)


@pytest.fixture
def tmp_index_dir(tmp_path: Path) -> Path:
    """Provide temporary directory for the persisted store."""
    index_dir = tmp_path / "index"
    index_dir.mkdir()
    return index_dir
