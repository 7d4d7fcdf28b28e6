"""SQLite-backed vector index with brute-force cosine similarity.

Vectors are stored as float32 BLOBs; queries load the candidate rows (narrowed
by ``textbook_id`` in SQL when the filter names one) and rank them with numpy.
Adequate for the few thousand modules a textbook catalogue produces.

Unlike the cache, index failures propagate: a search that cannot reach its
index must fail loudly.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import aiosqlite
import numpy as np
import structlog

from openstax_mcp.models.search import VectorEntry, VectorMatch

log = structlog.get_logger()

_CREATE_VECTOR_TABLE = """
CREATE TABLE IF NOT EXISTS vectors (
    id          TEXT PRIMARY KEY,
    textbook_id TEXT,
    dimensions  INTEGER NOT NULL,
    embedding   BLOB NOT NULL,
    metadata    TEXT NOT NULL DEFAULT '{}',
    updated_at  TEXT NOT NULL
)
"""

_CREATE_VECTOR_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_vectors_textbook ON vectors(textbook_id)"
)


class VectorIndex:
    """Vector store implementing VectorIndexProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_VECTOR_TABLE)
        await self._db.execute(_CREATE_VECTOR_INDEX)
        await self._db.commit()

    async def upsert(self, entries: list[VectorEntry]) -> None:
        """Insert or replace entries by id."""
        now = datetime.now(UTC).isoformat()
        rows = []
        for entry in entries:
            vector = np.asarray(entry.values, dtype=np.float32)
            rows.append(
                (
                    entry.id,
                    entry.metadata.get("textbook_id"),
                    int(vector.shape[0]),
                    vector.tobytes(),
                    json.dumps(entry.metadata),
                    now,
                )
            )
        await self._db.executemany(
            "INSERT OR REPLACE INTO vectors "
            "(id, textbook_id, dimensions, embedding, metadata, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            rows,
        )
        await self._db.commit()

    async def query(
        self,
        vector: list[float],
        top_k: int = 5,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return the ``top_k`` nearest entries by cosine similarity, best first.

        ``filter`` is an equality match against stored metadata.
        """
        query_vec = np.asarray(vector, dtype=np.float32)
        query_norm = float(np.linalg.norm(query_vec))
        if query_norm == 0.0:
            return []

        textbook_id = (filter or {}).get("textbook_id")
        if textbook_id is not None:
            cursor = await self._db.execute(
                "SELECT id, dimensions, embedding, metadata FROM vectors WHERE textbook_id = ?",
                (textbook_id,),
            )
        else:
            cursor = await self._db.execute(
                "SELECT id, dimensions, embedding, metadata FROM vectors"
            )
        rows = await cursor.fetchall()

        matches: list[VectorMatch] = []
        skipped = 0
        for entry_id, dimensions, blob, raw_metadata in rows:
            if dimensions != query_vec.shape[0]:
                skipped += 1
                continue
            metadata = json.loads(raw_metadata)
            if filter and any(metadata.get(k) != v for k, v in filter.items()):
                continue
            stored = np.frombuffer(blob, dtype=np.float32)
            stored_norm = float(np.linalg.norm(stored))
            if stored_norm == 0.0:
                continue
            score = float(np.dot(query_vec, stored) / (query_norm * stored_norm))
            matches.append(VectorMatch(id=entry_id, score=score, metadata=metadata))

        if skipped:
            log.warning("vector_dimension_mismatch", skipped=skipped, expected=len(vector))

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]
