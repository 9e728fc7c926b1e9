"""Durable graph store backed by SQLite.

One row per vibe (JSON document plus a float32 embedding blob) and one row
per edge keyed by (from_id, to_id, type). Edges reference vibes with
ON DELETE CASCADE, so deleting a vibe never leaves orphaned edges.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Collection, Iterable
from datetime import datetime
from pathlib import Path

import numpy as np

from .constants import (
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_EMBEDDING_SEARCH_LIMIT,
    GRAPH_FORMAT_VERSION,
    MAX_VIBES,
)
from .models import CulturalGraph, GraphEdge, GraphMetadata, Vibe, utc_now
from .store import CapacityError, GraphStore, GraphStoreError, rank_by_embedding
from .vectors import validate_embedding

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def _serialize_f32(vector: list[float]) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


def _deserialize_f32(data: bytes) -> list[float]:
    return np.frombuffer(data, dtype=np.float32).astype(float).tolist()


class SqliteGraphStore(GraphStore):
    """Graph store persisted to a single SQLite file.

    ``put_many`` is one transaction: either every vibe is written or none.
    A lock serialises access to the shared connection.
    """

    def __init__(
        self,
        db_path: Path,
        max_vibes: int = MAX_VIBES,
        valid_dimensions: Collection[int] = DEFAULT_EMBEDDING_DIMENSIONS,
    ):
        """Initialize the store.

        Args:
            db_path: Path to the database file (created if missing)
            max_vibes: Maximum number of vibes accepted
            valid_dimensions: Accepted embedding lengths
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_vibes = max_vibes
        self.valid_dimensions = frozenset(valid_dimensions)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path), timeout=30.0, check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=30000")
            self._conn.execute("PRAGMA foreign_keys=ON")
        return self._conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                created_at TEXT DEFAULT (datetime('now'))
            );

            CREATE TABLE IF NOT EXISTS vibes (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                data TEXT NOT NULL,
                embedding BLOB,
                embedding_dim INTEGER
            );

            CREATE TABLE IF NOT EXISTS edges (
                from_id TEXT NOT NULL REFERENCES vibes(id) ON DELETE CASCADE,
                to_id TEXT NOT NULL REFERENCES vibes(id) ON DELETE CASCADE,
                type TEXT NOT NULL,
                strength REAL NOT NULL,
                PRIMARY KEY (from_id, to_id, type)
            );

            CREATE TABLE IF NOT EXISTS graph_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_vibes_timestamp ON vibes(timestamp);
            CREATE INDEX IF NOT EXISTS idx_vibes_dim ON vibes(embedding_dim);
            CREATE INDEX IF NOT EXISTS idx_edges_to ON edges(to_id);
        """)

        version = conn.execute("SELECT version FROM schema_version").fetchone()
        if version is None:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        elif version[0] < SCHEMA_VERSION:
            logger.warning(f"Schema version {version[0]} detected, may need migration")
        conn.commit()

    # --- Row conversion ---

    def _row_to_vibe(self, row: sqlite3.Row) -> Vibe:
        data = json.loads(row["data"])
        if row["embedding"] is not None:
            data["embedding"] = _deserialize_f32(row["embedding"])
        return Vibe.model_validate(data)

    def _row_to_edge(self, row: sqlite3.Row) -> GraphEdge:
        return GraphEdge(
            from_id=row["from_id"],
            to_id=row["to_id"],
            type=row["type"],
            strength=row["strength"],
        )

    def _touch(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO graph_meta (key, value) VALUES ('last_updated', ?)",
            (utc_now().isoformat(),),
        )

    def _write_vibe(self, conn: sqlite3.Connection, vibe: Vibe) -> None:
        validate_embedding(vibe.embedding, self.valid_dimensions)

        exists = conn.execute("SELECT 1 FROM vibes WHERE id = ?", (vibe.id,)).fetchone()
        if exists is None:
            count = conn.execute("SELECT COUNT(*) FROM vibes").fetchone()[0]
            if count >= self.max_vibes:
                raise CapacityError(self.max_vibes)

        data = vibe.model_dump(mode="json", exclude={"embedding"})
        embedding = vibe.embedding
        # Upsert without REPLACE: REPLACE would delete the row and cascade its edges
        conn.execute(
            """
            INSERT INTO vibes (id, name, timestamp, data, embedding, embedding_dim)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                timestamp = excluded.timestamp,
                data = excluded.data,
                embedding = excluded.embedding,
                embedding_dim = excluded.embedding_dim
            """,
            (
                vibe.id,
                vibe.name,
                vibe.timestamp.isoformat(),
                json.dumps(data),
                _serialize_f32(embedding) if embedding is not None else None,
                len(embedding) if embedding is not None else None,
            ),
        )

    # --- Vibe operations ---

    def put(self, vibe: Vibe) -> None:
        self.put_many([vibe])

    def put_many(self, vibes: Iterable[Vibe]) -> None:
        self.apply_update(vibes)

    def apply_update(self, vibes: Iterable[Vibe], remove_ids: Iterable[str] = ()) -> None:
        with self._lock:
            conn = self._get_conn()
            try:
                # Deletions first so their rows no longer count against the cap
                conn.executemany("DELETE FROM vibes WHERE id = ?", [(vid,) for vid in remove_ids])
                for vibe in vibes:
                    self._write_vibe(conn, vibe)
                self._touch(conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def get(self, vibe_id: str) -> Vibe | None:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT * FROM vibes WHERE id = ?", (vibe_id,)
            ).fetchone()
            return self._row_to_vibe(row) if row else None

    def get_all(self) -> list[Vibe]:
        with self._lock:
            rows = self._get_conn().execute("SELECT * FROM vibes").fetchall()
            return [self._row_to_vibe(r) for r in rows]

    def delete(self, vibe_id: str) -> bool:
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute("DELETE FROM vibes WHERE id = ?", (vibe_id,))
            if cursor.rowcount:
                self._touch(conn)
            conn.commit()
            return cursor.rowcount > 0

    def count(self) -> int:
        with self._lock:
            return self._get_conn().execute("SELECT COUNT(*) FROM vibes").fetchone()[0]

    # --- Edge operations ---

    def put_edge(self, edge: GraphEdge) -> None:
        with self._lock:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO edges (from_id, to_id, type, strength)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(from_id, to_id, type) DO UPDATE SET strength = excluded.strength
                    """,
                    (edge.from_id, edge.to_id, edge.type, edge.strength),
                )
                self._touch(conn)
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise GraphStoreError(
                    f"Edge references unknown vibe(s): {edge.from_id} -> {edge.to_id}"
                ) from e

    def get_edges(self, vibe_id: str | None = None) -> list[GraphEdge]:
        with self._lock:
            conn = self._get_conn()
            if vibe_id is None:
                rows = conn.execute("SELECT * FROM edges").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM edges WHERE from_id = ? OR to_id = ?", (vibe_id, vibe_id)
                ).fetchall()
            return [self._row_to_edge(r) for r in rows]

    def edge_count(self) -> int:
        with self._lock:
            return self._get_conn().execute("SELECT COUNT(*) FROM edges").fetchone()[0]

    # --- Graph operations ---

    def _last_updated(self) -> datetime:
        row = self._get_conn().execute(
            "SELECT value FROM graph_meta WHERE key = 'last_updated'"
        ).fetchone()
        return datetime.fromisoformat(row[0]) if row else utc_now()

    def snapshot(self) -> CulturalGraph:
        with self._lock:
            vibes = {v.id: v for v in self.get_all()}
            return CulturalGraph(
                vibes=vibes,
                edges=self.get_edges(),
                metadata=GraphMetadata(
                    last_updated=self._last_updated(),
                    vibe_count=len(vibes),
                    version=GRAPH_FORMAT_VERSION,
                ),
            )

    def clear(self) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute("DELETE FROM edges")
            conn.execute("DELETE FROM vibes")
            self._touch(conn)
            conn.commit()

    # --- Search operations ---

    def find_by_keywords(self, keywords: Iterable[str]) -> list[Vibe]:
        wanted = {k.lower() for k in keywords}
        return [
            vibe for vibe in self.get_all()
            if wanted & {k.lower() for k in vibe.keywords}
        ]

    def find_by_embedding(
        self, embedding: list[float], top_k: int = DEFAULT_EMBEDDING_SEARCH_LIMIT
    ) -> list[Vibe]:
        validate_embedding(embedding, self.valid_dimensions)
        with self._lock:
            rows = self._get_conn().execute(
                "SELECT * FROM vibes WHERE embedding_dim = ?", (len(embedding),)
            ).fetchall()
            candidates = [self._row_to_vibe(r) for r in rows]
        return [vibe for vibe, _ in rank_by_embedding(embedding, candidates, top_k)]

    def find_recent(self, limit: int) -> list[Vibe]:
        vibes = self.get_all()
        vibes.sort(key=lambda v: v.timestamp, reverse=True)
        return vibes[:limit]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
