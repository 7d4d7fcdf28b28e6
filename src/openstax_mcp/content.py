"""Content resolution pipeline: textbook listing, structure and module content.

Every flow has the same shape: build a deterministic key, serve a fresh cache
hit as-is, otherwise fetch from GitHub, parse, transform, store under the
key with the kind's TTL, and return. Upstream failures abort the flow with an
OpenStaxError naming the missing artifact; nothing partial is cached or
returned and nothing is retried.

No MCP imports; the dispatcher wraps results into protocol envelopes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from openstax_mcp.cache import cache_key
from openstax_mcp.errors import ErrorCode, OpenStaxError
from openstax_mcp.markup import extract_modules, extract_text, parse_collection, parse_document
from openstax_mcp.models.cache import CacheRegion
from openstax_mcp.models.textbook import (
    ImageRef,
    Language,
    ModuleContent,
    Textbook,
    TextbookStructure,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from openstax_mcp.state import AppState

# Repository names containing these are tooling, not books
_EXCLUDED_REPO_MARKERS = ("template", "playground")

_LANGUAGE_MARKERS: tuple[tuple[Language, tuple[str, ...]], ...] = (
    ("es", ("fisica", "quimica", "calculo")),
    ("pl", ("fizyka", "mikroekonomia", "psychologia")),
)


# ---------------------------------------------------------------------------
# Shared cache-or-produce step
# ---------------------------------------------------------------------------


async def cache_or_produce(
    state: AppState,
    region: CacheRegion,
    key: str,
    ttl_hours: int,
    produce: Callable[[], Awaitable[dict[str, Any]]],
) -> dict[str, Any]:
    """Return the cached payload for ``key``, or produce, store and return it.

    The returned dict is annotated with ``from_cache``. Expired entries count
    as misses.
    """
    log = structlog.get_logger().bind(region=str(region), key=key)

    entry = await state.cache.get(region, key)
    if entry is not None and not entry.stale:
        log.info("cache_hit")
        return {**entry.payload, "from_cache": True}

    log.info("cache_miss_fetching", stale=entry is not None)
    payload = await produce()

    # Store in cache (non-fatal on failure, handled inside Cache)
    await state.cache.put(region, key, payload, ttl_hours)
    return {**payload, "from_cache": False}


# ---------------------------------------------------------------------------
# Textbook listing
# ---------------------------------------------------------------------------


def is_textbook_repo(name: str, prefix: str = "osbooks-") -> bool:
    return name.startswith(prefix) and not any(m in name for m in _EXCLUDED_REPO_MARKERS)


def infer_language(name: str) -> Language:
    """Guess the book language from well-known title words in the repo name."""
    for language, markers in _LANGUAGE_MARKERS:
        if any(marker in name for marker in markers):
            return language
    return "en"


def display_name(repo_name: str, prefix: str = "osbooks-") -> str:
    """``"osbooks-college-physics-bundle"`` → ``"college physics"``."""
    name = repo_name.removeprefix(prefix).replace("-", " ").replace("bundle", "")
    return " ".join(name.split())


def textbook_from_repo(repo: dict[str, Any], prefix: str = "osbooks-") -> Textbook:
    name = repo["name"]
    return Textbook(
        id=name,
        name=display_name(name, prefix),
        repo=repo.get("html_url") or "",
        description=repo.get("description"),
        language=infer_language(name.removeprefix(prefix)),
        updated=repo.get("updated_at"),
        stars=repo.get("stargazers_count") or 0,
    )


def filter_textbooks(
    textbooks: list[Textbook],
    subject: str | None = None,
    language: Language | None = None,
) -> list[Textbook]:
    """Apply the subject (case-insensitive substring) and language (exact) filters."""
    needle = subject.lower() if subject else None
    return [
        t
        for t in textbooks
        if (needle is None or needle in t.name.lower())
        and (language is None or t.language == language)
    ]


async def list_textbooks(
    state: AppState,
    *,
    subject: str | None = None,
    language: Language | None = None,
) -> dict[str, Any]:
    """Resolve the textbook listing; one cache entry per filter combination."""
    github = state.settings.github
    key = cache_key("list", subject.lower() if subject else None, language)

    async def produce() -> dict[str, Any]:
        url = f"{github.api_url}/orgs/{github.org}/repos?per_page=100&type=public"
        repos = await state.fetcher.fetch_json(url)
        if not isinstance(repos, list):
            raise OpenStaxError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message=f"GitHub API returned no repository list for org {github.org}",
                suggestion="GitHub may be rate limiting; try again later.",
                recoverable=True,
            )

        textbooks = [
            textbook_from_repo(repo, github.repo_prefix)
            for repo in repos
            if isinstance(repo, dict)
            and isinstance(repo.get("name"), str)
            and is_textbook_repo(repo["name"], github.repo_prefix)
        ]
        textbooks = filter_textbooks(textbooks, subject, language)
        return {
            "textbooks": [t.model_dump(mode="json") for t in textbooks],
            "count": len(textbooks),
        }

    return await cache_or_produce(
        state, CacheRegion.TEXTBOOKS, key, state.settings.cache.listing_ttl_hours, produce
    )


# ---------------------------------------------------------------------------
# Textbook structure
# ---------------------------------------------------------------------------


async def get_textbook_structure(state: AppState, textbook_id: str) -> dict[str, Any]:
    """Resolve a textbook's table of contents from its collection.xml."""
    github = state.settings.github
    key = cache_key("structure", textbook_id)

    async def produce() -> dict[str, Any]:
        url = f"{github.api_url}/repos/{github.org}/{textbook_id}/contents/collections"
        try:
            files = await state.fetcher.fetch_json(url)
        except OpenStaxError as exc:
            if exc.code == ErrorCode.UPSTREAM_NOT_FOUND:
                raise OpenStaxError(
                    code=ErrorCode.TEXTBOOK_NOT_FOUND,
                    message=f"Textbook {textbook_id} not found or has no collections directory",
                    suggestion="Call list_textbooks to find valid textbook ids.",
                ) from exc
            raise

        collection_file = next(
            (
                f
                for f in (files if isinstance(files, list) else [])
                if isinstance(f, dict) and str(f.get("name", "")).endswith(".collection.xml")
            ),
            None,
        )
        if collection_file is None or not collection_file.get("download_url"):
            raise OpenStaxError(
                code=ErrorCode.COLLECTION_NOT_FOUND,
                message=f"No collection.xml found for textbook {textbook_id}",
                suggestion="This repository does not appear to be an OpenStax book.",
            )

        xml = await state.fetcher.fetch_text(collection_file["download_url"])
        collection = parse_collection(xml)
        structure = TextbookStructure(
            textbook_id=textbook_id,
            title=collection.title or "Unknown",
            modules=extract_modules(collection),
            metadata=collection.metadata,
        )
        structlog.get_logger().info(
            "structure_extracted",
            textbook_id=textbook_id,
            collection=collection_file["name"],
            module_count=len(structure.modules),
        )
        return structure.model_dump(mode="json")

    return await cache_or_produce(
        state, CacheRegion.TEXTBOOKS, key, state.settings.cache.content_ttl_hours, produce
    )


# ---------------------------------------------------------------------------
# Module content
# ---------------------------------------------------------------------------


async def get_module_content(
    state: AppState,
    textbook_id: str,
    module_id: str,
    *,
    include_images: bool = True,
) -> dict[str, Any]:
    """Resolve one module's title, plain text, source markup and media."""
    github = state.settings.github
    key = cache_key("module", textbook_id, module_id, "images" if include_images else "text")

    async def produce() -> dict[str, Any]:
        url = (
            f"{github.raw_url}/{github.org}/{textbook_id}/{github.branch}"
            f"/modules/{module_id}/index.cnxml"
        )
        try:
            xml = await state.fetcher.fetch_text(url)
        except OpenStaxError as exc:
            if exc.code == ErrorCode.UPSTREAM_NOT_FOUND:
                raise OpenStaxError(
                    code=ErrorCode.MODULE_NOT_FOUND,
                    message=f"Module {module_id} not found in textbook {textbook_id}",
                    suggestion="Call get_textbook_structure to list valid module ids.",
                ) from exc
            raise

        document = parse_document(xml)
        content = ModuleContent(
            textbook_id=textbook_id,
            module_id=module_id,
            title=document.title or "Untitled",
            content=extract_text(document.content),
            raw_xml=xml,
            images=await _list_media(state, textbook_id, module_id) if include_images else None,
        )
        payload = content.model_dump(mode="json")
        if payload["images"] is None:
            del payload["images"]
        return payload

    return await cache_or_produce(
        state, CacheRegion.TEXTBOOKS, key, state.settings.cache.content_ttl_hours, produce
    )


async def _list_media(state: AppState, textbook_id: str, module_id: str) -> list[ImageRef] | None:
    """List a module's media folder. Modules without media yield ``None``."""
    github = state.settings.github
    url = f"{github.api_url}/repos/{github.org}/{textbook_id}/contents/modules/{module_id}/media"
    try:
        files = await state.fetcher.fetch_json(url)
    except OpenStaxError as exc:
        # Media is decorative; the module text is still complete without it.
        structlog.get_logger().info(
            "media_listing_unavailable",
            textbook_id=textbook_id,
            module_id=module_id,
            code=exc.code,
        )
        return None
    if not isinstance(files, list):
        return None
    return [
        ImageRef(name=f["name"], url=f.get("download_url"))
        for f in files
        if isinstance(f, dict) and isinstance(f.get("name"), str)
    ]
