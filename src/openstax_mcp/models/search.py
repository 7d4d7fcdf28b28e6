from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class VectorEntry(BaseModel):
    """One indexed module. ``id`` is ``f"{textbook_id}_{module_id}"``."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = {}


class VectorMatch(BaseModel):
    """Single nearest-neighbour result returned by the vector index."""

    id: str
    score: float  # Cosine similarity, -1.0–1.0
    metadata: dict[str, Any] = {}
