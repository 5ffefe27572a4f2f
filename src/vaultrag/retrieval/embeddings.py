"""
Embedding generation via an OpenAI-compatible embeddings API.

Provides a bounded FIFO cache shared by single and batch embedding calls,
and cosine similarity over raw vectors.
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Optional, Protocol, Sequence

import httpx
import numpy as np
from numpy.typing import ArrayLike, NDArray

from vaultrag.config import settings
from vaultrag.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    """Anything that turns texts into fixed-dimension vectors."""

    dimension: int

    def embed(self, text: str) -> NDArray[np.float32]: ...

    def embed_batch(self, texts: Sequence[str]) -> NDArray[np.float32]: ...


class EmbeddingCache:
    """
    Thread-safe embedding cache with first-in-first-out eviction.

    Entries are keyed by the first ``key_chars`` characters of the text, so
    two texts sharing that prefix share a cache entry.

    Example:
        >>> cache = EmbeddingCache(max_size=2)
        >>> cache.put("a", np.zeros(3, dtype=np.float32))
        >>> cache.get("a").shape
        (3,)
    """

    def __init__(self, max_size: int = 1000, key_chars: int = 500) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if key_chars < 1:
            raise ValueError(f"key_chars must be positive, got {key_chars}")
        self.max_size = max_size
        self.key_chars = key_chars
        self._entries: OrderedDict[str, NDArray[np.float32]] = OrderedDict()
        self._lock = threading.Lock()

    def key(self, text: str) -> str:
        """Cache key for a text."""
        return text[: self.key_chars]

    def get(self, text: str) -> Optional[NDArray[np.float32]]:
        with self._lock:
            return self._entries.get(self.key(text))

    def put(self, text: str, embedding: NDArray[np.float32]) -> None:
        """Insert an embedding, evicting the oldest entry when full."""
        key = self.key(text)
        with self._lock:
            if key in self._entries:
                self._entries[key] = embedding
                return
            while len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted embedding cache entry ({len(evicted)} chars)")
            self._entries[key] = embedding

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"size": len(self._entries), "max_size": self.max_size}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class OpenAIEmbedder:
    """
    Generate embeddings using an OpenAI-compatible embeddings endpoint.

    Failed requests are reported as UpstreamError and never retried here;
    retry policy belongs to the caller.

    Example:
        >>> embedder = OpenAIEmbedder(api_key="sk-...")
        >>> vector = embedder.embed("What is a bioregion?")
        >>> vector.shape
        (1536,)
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
        cache: Optional[EmbeddingCache] = None,
    ) -> None:
        """
        Initialize the embedder.

        Args:
            model: Embedding model ID (default from settings)
            api_key: API key (default from settings)
            base_url: API root URL (default from settings)
            dimension: Expected vector length (default from settings)
            timeout: Request timeout in seconds (default from settings)
            cache: Embedding cache (a new one sized from settings by default)

        Raises:
            ConfigurationError: If no API key is available
        """
        self.model = model or settings.embedding_model
        self.api_key = api_key or settings.openai_api_key_value
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for embeddings")
        self.base_url = (base_url or settings.embedding_base_url).rstrip("/")
        self.dimension = dimension or settings.embedding_dimension
        self.timeout = timeout or settings.embedding_timeout
        self.cache = cache or EmbeddingCache(
            max_size=settings.embedding_cache_size,
            key_chars=settings.embedding_cache_key_chars,
        )

    def embed(self, text: str) -> NDArray[np.float32]:
        """
        Generate the embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Array of shape (dimension,)

        Raises:
            UpstreamError: If the endpoint fails or returns a bad vector
        """
        cached = self.cache.get(text)
        if cached is not None:
            return cached

        embedding = self._request(text)[0]
        self.cache.put(text, embedding)
        return embedding

    def embed_batch(self, texts: Sequence[str]) -> NDArray[np.float32]:
        """
        Generate embeddings for many texts with one upstream call.

        Only cache misses are sent upstream; the result preserves input order.

        Args:
            texts: Texts to embed

        Returns:
            Array of shape (len(texts), dimension)

        Raises:
            UpstreamError: If the endpoint fails or returns bad vectors
        """
        if not texts:
            return np.empty((0, self.dimension), dtype=np.float32)

        results: list[Optional[NDArray[np.float32]]] = [self.cache.get(text) for text in texts]
        missing = [i for i, vector in enumerate(results) if vector is None]

        if missing:
            logger.debug(f"Embedding {len(missing)}/{len(texts)} texts ({len(texts) - len(missing)} cached)")
            embeddings = self._request([texts[i] for i in missing])
            for i, embedding in zip(missing, embeddings):
                results[i] = embedding
                self.cache.put(texts[i], embedding)

        return np.vstack(results)

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> dict[str, int]:
        return self.cache.stats()

    def _request(self, payload_input: str | list[str]) -> list[NDArray[np.float32]]:
        """
        Call the embeddings endpoint.

        Args:
            payload_input: A single text or a list of texts

        Returns:
            One validated vector per input, in input order

        Raises:
            UpstreamError: On timeouts, transport errors, non-2xx responses,
                malformed bodies, or vectors of the wrong count/dimension
        """
        url = f"{self.base_url}/embeddings"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"input": payload_input, "model": self.model}
        expected = 1 if isinstance(payload_input, str) else len(payload_input)

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Embedding request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Embedding request failed: {e}") from e

        if response.is_error:
            raise UpstreamError(
                f"Embedding API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            data: list[dict[str, Any]] = response.json()["data"]
            ordered = sorted(enumerate(data), key=lambda item: item[1].get("index", item[0]))
            vectors = [np.asarray(item["embedding"], dtype=np.float32) for _, item in ordered]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise UpstreamError(f"Malformed embedding response: {e}") from e

        if len(vectors) != expected:
            raise UpstreamError(f"Expected {expected} embeddings, got {len(vectors)}")

        for vector in vectors:
            if vector.ndim != 1 or vector.shape[0] != self.dimension:
                raise UpstreamError(
                    f"Unexpected embedding dimension: {vector.shape[-1] if vector.ndim else 0} "
                    f"(expected {self.dimension})"
                )

        return vectors


def cosine_similarity(a: ArrayLike, b: ArrayLike) -> float:
    """
    Cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1], or 0.0 if either vector has zero norm

    Raises:
        ValueError: If the vectors have different lengths
    """
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.shape[0] != vb.shape[0]:
        raise ValueError(f"Embedding dimensions must match: {va.shape[0]} != {vb.shape[0]}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))
