"""Protocol interfaces for swappable components.

Tool handlers and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory implementations
- Other backends (e.g. a hosted vector database) to be swapped without
  changing tool code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from openstax_mcp.models.cache import CacheEntry, CacheRegion
    from openstax_mcp.models.search import VectorEntry, VectorMatch


class CacheProtocol(Protocol):
    """Interface for the durable key-value cache."""

    async def get(self, region: CacheRegion, key: str) -> CacheEntry | None: ...

    async def put(
        self,
        region: CacheRegion,
        key: str,
        payload: dict[str, Any],
        ttl_hours: int,
    ) -> None: ...

    async def cleanup_if_due(self, interval_hours: int) -> None: ...


class FetcherProtocol(Protocol):
    """Interface for the document-hosting HTTP fetcher."""

    async def fetch_json(self, url: str) -> Any: ...

    async def fetch_text(self, url: str, *, accept: str | None = None) -> str: ...


class ModelProtocol(Protocol):
    """Interface for embedding and text-generation calls."""

    async def embed(self, texts: list[str]) -> list[list[float]]: ...

    async def generate(self, prompt: str) -> str: ...


class VectorIndexProtocol(Protocol):
    """Interface for the nearest-neighbour index."""

    async def upsert(self, entries: list[VectorEntry]) -> None: ...

    async def query(
        self,
        vector: list[float],
        top_k: int = 5,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]: ...
