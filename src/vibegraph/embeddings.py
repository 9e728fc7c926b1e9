"""Embedding providers.

Two backends, both producing vectors the graph store accepts:
- SentenceTransformerEmbedder: local model (all-mpnet-base-v2, 768 dims)
- OllamaEmbedder: local Ollama server over HTTP (nomic-embed-text, 768 dims)

Embedding is the only network/model-bound step in the core. Callers treat
any exception raised here as an upstream failure and degrade.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import httpx

from .constants import (
    DEFAULT_LOCAL_EMBEDDING_MODEL,
    DEFAULT_OLLAMA_EMBEDDING_MODEL,
    DEFAULT_OLLAMA_URL,
    EMBEDDING_TIMEOUT_SECONDS,
    MAX_EMBEDDING_TEXT_CHARS,
)

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """The embedding provider failed or is unavailable."""


class Embedder(ABC):
    """Text in, fixed-length vector out."""

    name: str = "embedder"

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of the vectors this provider returns."""

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed a single text."""

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts. Default: one call per text."""
        return [self.embed(text) for text in texts]

    def is_available(self) -> bool:
        return True


class SentenceTransformerEmbedder(Embedder):
    """Local embeddings via sentence-transformers.

    The model is loaded lazily on first use to avoid the multi-second cold
    start when embeddings are never needed.
    """

    name = "sentence-transformers"

    def __init__(self, model_name: str = DEFAULT_LOCAL_EMBEDDING_MODEL):
        self._model_name = model_name
        self._model = None
        self._dims: int | None = None
        self._load_error: str | None = None

    def _try_load_model(self) -> bool:
        """Try to load embedding model. Returns True on success."""
        if self._model is not None:
            return True
        if self._load_error is not None:
            return False

        try:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self._model_name)
            self._dims = self._model.get_sentence_embedding_dimension()
            logger.info(f"Loaded embedding model {self._model_name} ({self._dims} dims)")
            return True
        except (ImportError, OSError, RuntimeError) as e:
            self._load_error = str(e)
            logger.warning(f"Embedding model unavailable: {e}")
            return False

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if not self._try_load_model():
            raise EmbeddingError(f"Embedding model failed: {self._load_error}")
        return self._model

    @property
    def dimensions(self) -> int:
        _ = self.model
        return self._dims or 0

    def is_available(self) -> bool:
        return self._try_load_model()

    def embed(self, text: str) -> list[float]:
        return self.model.encode(text[:MAX_EMBEDDING_TEXT_CHARS]).tolist()

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        truncated = [t[:MAX_EMBEDDING_TEXT_CHARS] for t in texts]
        return [vector.tolist() for vector in self.model.encode(truncated)]


class OllamaEmbedder(Embedder):
    """Embeddings from a local Ollama server.

    Requests are timeout-bound; transient failures (connection errors, 5xx,
    429) are retried with exponential backoff before giving up.
    """

    name = "ollama"

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        model: str = DEFAULT_OLLAMA_EMBEDDING_MODEL,
        dimensions: int = 768,
        timeout: float = EMBEDDING_TIMEOUT_SECONDS,
        max_retries: int = 3,
        base_delay: float = 1.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._dimensions = dimensions
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _is_retryable(self, error: Exception) -> bool:
        if isinstance(error, httpx.TransportError):
            return True
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            return status == 429 or status >= 500
        return False

    def _request(self, text: str) -> list[float]:
        response = self._client.post(
            f"{self.base_url}/api/embeddings",
            json={"model": self.model, "prompt": text[:MAX_EMBEDDING_TEXT_CHARS]},
        )
        response.raise_for_status()
        data = response.json()
        embedding = data.get("embedding")
        if not isinstance(embedding, list):
            raise EmbeddingError("Invalid response from Ollama: missing or invalid embedding")
        return [float(v) for v in embedding]

    def embed(self, text: str) -> list[float]:
        attempt = 0
        while True:
            try:
                return self._request(text)
            except (httpx.HTTPError, ValueError) as e:
                if attempt >= self.max_retries or not self._is_retryable(e):
                    raise EmbeddingError(f"Ollama embedding failed: {e}") from e
                delay = self.base_delay * (2 ** attempt)
                logger.debug(f"Ollama embedding attempt {attempt + 1} failed ({e}), retrying in {delay}s")
                time.sleep(delay)
                attempt += 1

    def is_available(self) -> bool:
        try:
            response = self._client.get(f"{self.base_url}/api/tags")
            if response.status_code != 200:
                return False
            models = [m.get("name", "") for m in response.json().get("models", [])]
            return any(name.startswith(self.model) for name in models)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Ollama availability check failed: {e}")
            return False

    def close(self) -> None:
        self._client.close()


def get_embedder(settings: "Settings") -> Embedder:
    """Build the embedder named in settings.

    "local" and "ollama" select a provider explicitly; "auto" prefers a
    running Ollama server and falls back to the local model.
    """
    provider = settings.embedding_provider.lower()

    if provider == "ollama":
        return OllamaEmbedder(base_url=settings.ollama_url, model=settings.ollama_model)
    if provider == "local":
        return SentenceTransformerEmbedder(settings.embedding_model)
    if provider != "auto":
        raise ValueError(f"Unknown embedding provider: {settings.embedding_provider}")

    ollama = OllamaEmbedder(base_url=settings.ollama_url, model=settings.ollama_model)
    if ollama.is_available():
        logger.info("Using Ollama embeddings")
        return ollama
    ollama.close()
    logger.info("Ollama not available, using local sentence-transformers model")
    return SentenceTransformerEmbedder(settings.embedding_model)
