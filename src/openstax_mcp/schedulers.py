"""Periodic cache maintenance for the long-lived HTTP server."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from openstax_mcp.protocols import CacheProtocol

log = structlog.get_logger()


async def cache_maintenance_loop(cache: CacheProtocol, interval_hours: int) -> None:
    """Purge expired cache rows every ``interval_hours`` until cancelled.

    The startup purge is done by ``lifespan`` before any request is served, so
    the first wait here is a full interval. stdio servers never start this loop.
    """
    period = timedelta(hours=interval_hours).total_seconds()
    while True:
        await asyncio.sleep(period)
        log.debug("cache_maintenance_tick", interval_hours=interval_hours)
        await cache.cleanup_if_due(interval_hours)
