from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class CacheRegion(StrEnum):
    """Independent cache namespaces, one per volatility class of payload."""

    TEXTBOOKS = "textbooks"  # Listings, structures and module content
    PROBLEMS = "problems"  # Generated practice problems
    NOTEBOOKS = "notebooks"  # Generated notebooks


class CacheEntry(BaseModel):
    """A cached JSON payload within one region."""

    region: CacheRegion
    key: str
    payload: dict[str, Any]
    fetched_at: datetime
    expires_at: datetime
    stale: bool = False
