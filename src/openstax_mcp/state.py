"""Application state container.

AppState is created once at server startup (inside the lifespan context
manager) and handed to every dispatcher. It holds only the external
collaborators; no per-request data is stored here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from openstax_mcp.config import Settings
    from openstax_mcp.protocols import (
        CacheProtocol,
        FetcherProtocol,
        ModelProtocol,
        VectorIndexProtocol,
    )


@dataclass(frozen=True)
class AppState:
    """Holds all shared runtime collaborators. Passed to every tool handler."""

    settings: Settings
    cache: CacheProtocol
    fetcher: FetcherProtocol
    models: ModelProtocol
    vector_index: VectorIndexProtocol
    http_client: httpx.AsyncClient | None = None
