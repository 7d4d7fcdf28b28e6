"""Tool handler for index_textbook_for_search.

Best-effort bulk operation: modules are embedded one after another, and a
failure on one module is logged and skipped instead of aborting the run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from openstax_mcp.content import get_module_content, get_textbook_structure
from openstax_mcp.models.search import VectorEntry
from openstax_mcp.models.tools import IndexTextbookInput
from openstax_mcp.tools import validate_arguments

if TYPE_CHECKING:
    from openstax_mcp.state import AppState


def vector_id(textbook_id: str, module_id: str) -> str:
    return f"{textbook_id}_{module_id}"


async def handle(arguments: dict[str, Any], state: AppState) -> dict:
    """Handle an index_textbook_for_search tool call."""
    log = structlog.get_logger().bind(tool="index_textbook_for_search")
    log.info("handler_called")

    validated = validate_arguments(
        IndexTextbookInput,
        arguments,
        suggestion="Provide textbook_id; max_modules must be between 1 and 500.",
    )
    textbook_id = validated.textbook_id
    log = log.bind(textbook_id=textbook_id)

    structure = await get_textbook_structure(state, textbook_id)
    modules = structure["modules"]
    to_index = modules[: validated.max_modules]
    snippet_chars = state.settings.search.snippet_chars

    indexed = 0
    for module in to_index:
        module_id = module["id"]
        try:
            content = await get_module_content(
                state, textbook_id, module_id, include_images=False
            )
            # Collection files rarely title their modules; the document title is authoritative
            title = content["title"]
            snippet = f"{title} {content['content'][:snippet_chars]}"
            [vector] = await state.models.embed([snippet])
            await state.vector_index.upsert(
                [
                    VectorEntry(
                        id=vector_id(textbook_id, module_id),
                        values=vector,
                        metadata={
                            "textbook_id": textbook_id,
                            "module_id": module_id,
                            "title": title,
                        },
                    )
                ]
            )
        except Exception:
            log.warning("module_index_failed", module_id=module_id, exc_info=True)
            continue
        indexed += 1
        log.debug("module_indexed", module_id=module_id)

    log.info("index_complete", indexed=indexed, attempted=len(to_index))
    return {
        "indexed": indexed,
        "attempted": len(to_index),
        "total_modules": len(modules),
        "textbook_id": textbook_id,
        "message": f"Successfully indexed {indexed} modules for semantic search",
    }
