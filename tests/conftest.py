"""Shared test fixtures and helpers for vibegraph tests."""

from datetime import datetime, timedelta, timezone

import pytest

from vibegraph.embeddings import Embedder, EmbeddingError
from vibegraph.models import Vibe
from vibegraph.store import MemoryGraphStore
from vibegraph.sqlite_store import SqliteGraphStore


DIMS = 768

# Each vocabulary word owns one axis of the fake embedding space
VOCABULARY = (
    "coffee", "ai", "politics", "fashion", "music", "startup",
    "climate", "gaming", "food", "crypto", "art", "sports",
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# --- Helper Functions (not fixtures) ---


def unit_vector(index: int, dims: int = DIMS) -> list[float]:
    """Vector with a single 1.0 at ``index``."""
    vector = [0.0] * dims
    vector[index] = 1.0
    return vector


def topic_vector(*words: str, dims: int = DIMS) -> list[float]:
    """Vector with 1.0 on the axis of every given vocabulary word."""
    vector = [0.0] * dims
    for word in words:
        vector[VOCABULARY.index(word)] = 1.0
    return vector


def make_vibe(name: str, days_ago: float = 0.0, now: datetime = NOW, **fields) -> Vibe:
    """Build a vibe last seen ``days_ago`` days before ``now``."""
    seen = now - timedelta(days=days_ago)
    fields.setdefault("timestamp", seen)
    fields.setdefault("first_seen", seen)
    fields.setdefault("last_seen", seen)
    return Vibe(name=name, **fields)


class FakeEmbedder(Embedder):
    """Deterministic embedder: one axis per vocabulary word found in the text.

    Text with no vocabulary word maps to a small vector on the last axis,
    which is nearly orthogonal to every topic.
    """

    name = "fake"

    def __init__(self, dims: int = DIMS, fail: bool = False):
        self._dims = dims
        self.fail = fail
        self.calls: list[str] = []

    @property
    def dimensions(self) -> int:
        return self._dims

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("embedding service down")

        words = set(text.lower().replace(",", " ").replace(".", " ").replace(":", " ").split())
        vector = [0.0] * self._dims
        for index, word in enumerate(VOCABULARY):
            if word in words:
                vector[index] = 1.0
        vector[-1] = 0.05
        return vector


# --- Fixtures ---


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def failing_embedder():
    return FakeEmbedder(fail=True)


@pytest.fixture
def memory_store():
    return MemoryGraphStore()


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteGraphStore(tmp_path / "graph.db")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Both store backends, so the shared contract is tested once for each."""
    if request.param == "memory":
        yield MemoryGraphStore()
    else:
        store = SqliteGraphStore(tmp_path / "graph.db")
        yield store
        store.close()
