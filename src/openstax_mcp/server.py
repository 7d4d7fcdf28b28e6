"""Server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the lifespan context manager
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import AsyncExitStack, asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from openstax_mcp import __version__
from openstax_mcp.cache import Cache
from openstax_mcp.config import Settings
from openstax_mcp.fetcher import Fetcher, build_http_client
from openstax_mcp.inference import ModelClient
from openstax_mcp.schedulers import cache_maintenance_loop
from openstax_mcp.state import AppState
from openstax_mcp.transport import run_http_server, run_stdio
from openstax_mcp.vector_index import VectorIndex

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout is reserved for the JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


async def _open_db(db_path: str) -> aiosqlite.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return await aiosqlite.connect(str(path))


@asynccontextmanager
async def lifespan(settings: Settings) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime.

    Every resource is registered on an exit stack as soon as it exists, so a
    failure part way through startup still closes whatever was opened.
    """
    log.info("server_starting", version=__version__, transport=settings.server.transport)

    async with AsyncExitStack() as stack:
        stack.callback(log.info, "server_stopping")

        http_client = build_http_client(settings.github.timeout_seconds)
        stack.push_async_callback(http_client.aclose)
        cache_db = await _open_db(settings.cache.db_path)
        stack.push_async_callback(cache_db.close)
        vector_db = await _open_db(settings.search.db_path)
        stack.push_async_callback(vector_db.close)

        cache = Cache(cache_db)
        await cache.init_db()
        vector_index = VectorIndex(vector_db)
        await vector_index.init_db()

        state = AppState(
            settings=settings,
            cache=cache,
            fetcher=Fetcher(http_client, settings.github),
            models=ModelClient(http_client, settings.models),
            vector_index=vector_index,
            http_client=http_client,
        )

        interval_hours = settings.cache.cleanup_interval_hours
        await cache.cleanup_if_due(interval_hours)
        if settings.server.transport == "http":
            maintenance = asyncio.create_task(cache_maintenance_loop(cache, interval_hours))
            stack.push_async_callback(_cancel, maintenance)

        log.info(
            "server_started",
            version=__version__,
            transport=settings.server.transport,
            models_configured=bool(settings.models.base_url),
        )
        yield state


async def _cancel(task: asyncio.Task[None]) -> None:
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def _serve_stdio(settings: Settings) -> None:
    async with lifespan(settings) as state:
        await run_stdio(state)


def main() -> None:
    settings = Settings()
    _setup_logging(settings)

    if settings.server.transport == "http":
        run_http_server(settings, lambda: lifespan(settings))
        return

    asyncio.run(_serve_stdio(settings))


if __name__ == "__main__":
    main()
