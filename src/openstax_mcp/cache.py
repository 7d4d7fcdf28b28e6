"""SQLite cache gateway with per-entry expiry.

One table holds every region; entries are addressed by ``(region, key)``.
Keys come from ``cache_key()`` so identical logical requests always land on
the same row.

All cache operations catch ``aiosqlite.Error`` internally and degrade
gracefully: read failures return ``None`` (treated as cache miss by callers),
write failures are logged and ignored (fetched content is still returned).
Infrastructure errors never cross the Cache class boundary. Errors are still
logged with ``exc_info=True`` so they remain observable via stderr.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite
import structlog

from openstax_mcp.models.cache import CacheEntry, CacheRegion

log = structlog.get_logger()

_CREATE_CACHE_TABLE = """
CREATE TABLE IF NOT EXISTS cache_entries (
    region     TEXT NOT NULL,
    key        TEXT NOT NULL,
    payload    TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    PRIMARY KEY (region, key)
)
"""

_CREATE_CACHE_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at)"
)

_CREATE_METADATA_TABLE = """
CREATE TABLE IF NOT EXISTS server_metadata (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


def cache_key(kind: str, *parts: object) -> str:
    """Build a deterministic cache key: ``cache_key("module", "b", "m1")`` → ``"module:b:m1"``.

    ``None`` parts become ``"all"`` so an absent filter has a stable spelling.
    """
    return ":".join([kind, *("all" if part is None else str(part) for part in parts)])


class Cache:
    """SQLite-backed region cache implementing CacheProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_CACHE_TABLE)
        await self._db.execute(_CREATE_CACHE_INDEX)
        await self._db.execute(_CREATE_METADATA_TABLE)
        await self._db.commit()

    async def get(self, region: CacheRegion, key: str) -> CacheEntry | None:
        """Read an entry. Returns ``None`` on cache miss or read failure.

        Expired entries are returned with ``stale=True``; callers decide
        whether a stale payload is usable.
        """
        try:
            cursor = await self._db.execute(
                "SELECT payload, fetched_at, expires_at FROM cache_entries "
                "WHERE region = ? AND key = ?",
                (str(region), key),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            fetched_at = datetime.fromisoformat(row[1])
            expires_at = datetime.fromisoformat(row[2])
            stale = datetime.now(UTC) > expires_at

            return CacheEntry(
                region=region,
                key=key,
                payload=json.loads(row[0]),
                fetched_at=fetched_at,
                expires_at=expires_at,
                stale=stale,
            )
        except (aiosqlite.Error, ValueError):
            log.warning("cache_read_error", key=f"{region}:{key}", exc_info=True)
            return None

    async def put(
        self,
        region: CacheRegion,
        key: str,
        payload: dict[str, Any],
        ttl_hours: int,
    ) -> None:
        """Write an entry, replacing any previous one. Non-fatal on failure."""
        try:
            now = datetime.now(UTC)
            expires_at = now + timedelta(hours=ttl_hours)
            await self._db.execute(
                "INSERT OR REPLACE INTO cache_entries "
                "(region, key, payload, fetched_at, expires_at) VALUES (?, ?, ?, ?, ?)",
                (
                    str(region),
                    key,
                    json.dumps(payload),
                    now.isoformat(),
                    expires_at.isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=f"{region}:{key}", exc_info=True)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup_if_due(self, interval_hours: int) -> None:
        """Run cleanup only if interval_hours have elapsed since the last run.

        Reads and writes ``last_cleanup_at`` from the ``server_metadata`` table.
        Falls through to run cleanup if the metadata row is missing or unreadable.
        Non-fatal on failure.
        """
        try:
            cursor = await self._db.execute(
                "SELECT value FROM server_metadata WHERE key = 'last_cleanup_at'"
            )
            row = await cursor.fetchone()
            if row is not None:
                last_run = datetime.fromisoformat(row[0])
                if datetime.now(UTC) - last_run < timedelta(hours=interval_hours):
                    log.debug("cache_cleanup_skipped", reason="not_due")
                    return
        except aiosqlite.Error:
            log.warning("cache_metadata_read_error", exc_info=True)

        await self.cleanup_expired()

        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO server_metadata (key, value) VALUES ('last_cleanup_at', ?)",
                (datetime.now(UTC).isoformat(),),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_metadata_write_error", exc_info=True)

    async def cleanup_expired(self) -> None:
        """Delete entries expired more than 7 days ago. Non-fatal on failure."""
        try:
            cutoff = (datetime.now(UTC) - timedelta(days=7)).isoformat()
            cursor = await self._db.execute(
                "DELETE FROM cache_entries WHERE expires_at < ?", (cutoff,)
            )
            deleted = cursor.rowcount
            await self._db.commit()
            log.info("cache_cleanup_complete", deleted=deleted)
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)
