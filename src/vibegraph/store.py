"""Graph storage contract and the in-memory implementation.

The store owns vibes and typed edges between them. Invariants:
- embeddings are validated before any write (no partial writes)
- the vibe count is capped; updates to existing ids never count against it
- deleting a vibe cascades to every edge touching it
- callers only ever see copies, never store-internal objects
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable

from .constants import (
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_EMBEDDING_SEARCH_LIMIT,
    GRAPH_FORMAT_VERSION,
    MAX_VIBES,
)
from .models import CulturalGraph, GraphEdge, GraphMetadata, Vibe, utc_now
from .vectors import cosine_similarity, validate_embedding

logger = logging.getLogger(__name__)

EdgeKey = tuple[str, str, str]


class GraphStoreError(Exception):
    """A write was rejected by the store."""


class CapacityError(GraphStoreError):
    """The store is full; the write was rejected, nothing was evicted."""

    def __init__(self, max_vibes: int):
        super().__init__(f"Graph store full: max {max_vibes} vibes")
        self.max_vibes = max_vibes


class GraphStore(ABC):
    """Storage contract shared by the in-memory and SQLite backends."""

    # --- Vibe operations ---

    @abstractmethod
    def put(self, vibe: Vibe) -> None:
        """Insert or replace a vibe (validated, capacity-checked)."""

    @abstractmethod
    def put_many(self, vibes: Iterable[Vibe]) -> None:
        """Insert or replace several vibes."""

    @abstractmethod
    def apply_update(self, vibes: Iterable[Vibe], remove_ids: Iterable[str] = ()) -> None:
        """Delete ``remove_ids`` and upsert ``vibes`` as one change.

        Validation and capacity are checked with the deletions already
        counted; if anything fails the store is left untouched.
        """

    @abstractmethod
    def get(self, vibe_id: str) -> Vibe | None:
        """Copy of the vibe, or None if not found."""

    @abstractmethod
    def get_all(self) -> list[Vibe]:
        """Copies of every stored vibe."""

    @abstractmethod
    def delete(self, vibe_id: str) -> bool:
        """Delete a vibe and its edges. Returns False if it did not exist."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored vibes."""

    # --- Edge operations ---

    @abstractmethod
    def put_edge(self, edge: GraphEdge) -> None:
        """Upsert an edge keyed by (from_id, to_id, type)."""

    @abstractmethod
    def get_edges(self, vibe_id: str | None = None) -> list[GraphEdge]:
        """All edges, or those incident to ``vibe_id``."""

    @abstractmethod
    def edge_count(self) -> int:
        """Number of stored edges."""

    # --- Graph operations ---

    @abstractmethod
    def snapshot(self) -> CulturalGraph:
        """Full graph view with a fresh copy of the vibe map."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all vibes and edges."""

    # --- Search operations ---

    @abstractmethod
    def find_by_keywords(self, keywords: Iterable[str]) -> list[Vibe]:
        """Vibes sharing at least one keyword (case-insensitive)."""

    @abstractmethod
    def find_by_embedding(
        self, embedding: list[float], top_k: int = DEFAULT_EMBEDDING_SEARCH_LIMIT
    ) -> list[Vibe]:
        """Top-k vibes by cosine similarity, same dimensionality only."""

    @abstractmethod
    def find_recent(self, limit: int) -> list[Vibe]:
        """Vibes ordered by ``timestamp`` descending."""


def rank_by_embedding(
    query: list[float], vibes: Iterable[Vibe], top_k: int
) -> list[tuple[Vibe, float]]:
    """Exact linear-scan ranking; vibes of another dimensionality are skipped."""
    scored = [
        (vibe, cosine_similarity(query, vibe.embedding))
        for vibe in vibes
        if vibe.embedding is not None and len(vibe.embedding) == len(query)
    ]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:top_k]


class MemoryGraphStore(GraphStore):
    """In-memory graph store.

    Thread-safety: every operation holds a single ``threading.RLock``, so
    writes are mutually exclusive with each other and with reads.

    Performance: O(1) vibe lookups; edge lookups and cascade deletes are
    O(degree) through a reverse index (vibe id -> incident edge keys).
    Similarity search is a linear scan.
    """

    def __init__(
        self,
        max_vibes: int = MAX_VIBES,
        valid_dimensions: Collection[int] = DEFAULT_EMBEDDING_DIMENSIONS,
    ):
        self.max_vibes = max_vibes
        self.valid_dimensions = frozenset(valid_dimensions)
        self._lock = threading.RLock()
        self._vibes: dict[str, Vibe] = {}
        self._edges: dict[EdgeKey, GraphEdge] = {}
        self._edges_by_vibe: dict[str, set[EdgeKey]] = {}
        self._last_updated = utc_now()

    # --- Vibe operations ---

    def _check_writable(self, vibe: Vibe) -> None:
        validate_embedding(vibe.embedding, self.valid_dimensions)
        if vibe.id not in self._vibes and len(self._vibes) >= self.max_vibes:
            raise CapacityError(self.max_vibes)

    def put(self, vibe: Vibe) -> None:
        with self._lock:
            self._check_writable(vibe)
            self._vibes[vibe.id] = vibe.copy_deep()
            self._last_updated = utc_now()

    def put_many(self, vibes: Iterable[Vibe]) -> None:
        """Write all vibes or none: everything is validated before the first write."""
        self.apply_update(vibes)

    def apply_update(self, vibes: Iterable[Vibe], remove_ids: Iterable[str] = ()) -> None:
        vibes = list(vibes)
        with self._lock:
            remaining = self._vibes.keys() - set(remove_ids)
            new_ids = {v.id for v in vibes} - remaining
            for vibe in vibes:
                validate_embedding(vibe.embedding, self.valid_dimensions)
            if len(remaining) + len(new_ids) > self.max_vibes:
                raise CapacityError(self.max_vibes)

            for vibe_id in self._vibes.keys() - remaining:
                self._remove(vibe_id)
            for vibe in vibes:
                self._vibes[vibe.id] = vibe.copy_deep()
            self._last_updated = utc_now()

    def get(self, vibe_id: str) -> Vibe | None:
        with self._lock:
            vibe = self._vibes.get(vibe_id)
            return vibe.copy_deep() if vibe else None

    def get_all(self) -> list[Vibe]:
        with self._lock:
            return [v.copy_deep() for v in self._vibes.values()]

    def _remove(self, vibe_id: str) -> bool:
        """Drop a vibe and its edges. Caller holds the lock."""
        if self._vibes.pop(vibe_id, None) is None:
            return False

        for key in self._edges_by_vibe.pop(vibe_id, set()):
            edge = self._edges.pop(key, None)
            if edge is None:
                continue
            other = edge.to_id if edge.from_id == vibe_id else edge.from_id
            incident = self._edges_by_vibe.get(other)
            if incident is not None:
                incident.discard(key)
                if not incident:
                    del self._edges_by_vibe[other]

        logger.debug(f"Deleted vibe {vibe_id}")
        return True

    def delete(self, vibe_id: str) -> bool:
        with self._lock:
            if not self._remove(vibe_id):
                return False
            self._last_updated = utc_now()
            return True

    def count(self) -> int:
        with self._lock:
            return len(self._vibes)

    # --- Edge operations ---

    def put_edge(self, edge: GraphEdge) -> None:
        with self._lock:
            missing = [vid for vid in (edge.from_id, edge.to_id) if vid not in self._vibes]
            if missing:
                raise GraphStoreError(f"Edge references unknown vibe(s): {', '.join(missing)}")

            key = edge.key
            self._edges[key] = edge.model_copy()
            self._edges_by_vibe.setdefault(edge.from_id, set()).add(key)
            self._edges_by_vibe.setdefault(edge.to_id, set()).add(key)
            self._last_updated = utc_now()

    def get_edges(self, vibe_id: str | None = None) -> list[GraphEdge]:
        with self._lock:
            if vibe_id is None:
                return [e.model_copy() for e in self._edges.values()]
            return [
                self._edges[key].model_copy()
                for key in self._edges_by_vibe.get(vibe_id, ())
                if key in self._edges
            ]

    def edge_count(self) -> int:
        with self._lock:
            return len(self._edges)

    # --- Graph operations ---

    def snapshot(self) -> CulturalGraph:
        with self._lock:
            return CulturalGraph(
                vibes={vid: v.copy_deep() for vid, v in self._vibes.items()},
                edges=[e.model_copy() for e in self._edges.values()],
                metadata=GraphMetadata(
                    last_updated=self._last_updated,
                    vibe_count=len(self._vibes),
                    version=GRAPH_FORMAT_VERSION,
                ),
            )

    def clear(self) -> None:
        with self._lock:
            self._vibes.clear()
            self._edges.clear()
            self._edges_by_vibe.clear()
            self._last_updated = utc_now()

    # --- Search operations ---

    def find_by_keywords(self, keywords: Iterable[str]) -> list[Vibe]:
        wanted = {k.lower() for k in keywords}
        with self._lock:
            return [
                vibe.copy_deep()
                for vibe in self._vibes.values()
                if wanted & {k.lower() for k in vibe.keywords}
            ]

    def find_by_embedding(
        self, embedding: list[float], top_k: int = DEFAULT_EMBEDDING_SEARCH_LIMIT
    ) -> list[Vibe]:
        validate_embedding(embedding, self.valid_dimensions)
        with self._lock:
            ranked = rank_by_embedding(embedding, self._vibes.values(), top_k)
            return [vibe.copy_deep() for vibe, _ in ranked]

    def find_recent(self, limit: int) -> list[Vibe]:
        with self._lock:
            recent = sorted(self._vibes.values(), key=lambda v: v.timestamp, reverse=True)
            return [v.copy_deep() for v in recent[:limit]]
