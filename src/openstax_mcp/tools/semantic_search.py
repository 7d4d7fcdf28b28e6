"""Tool handler for semantic_search.

Embeds the query and asks the vector index for its nearest modules. Results
are returned in the order the index produced them; nothing is re-ranked here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from openstax_mcp.models.tools import SemanticSearchInput
from openstax_mcp.tools import validate_arguments

if TYPE_CHECKING:
    from openstax_mcp.state import AppState


async def handle(arguments: dict[str, Any], state: AppState) -> dict:
    """Handle a semantic_search tool call."""
    log = structlog.get_logger().bind(tool="semantic_search")
    log.info("handler_called")

    validated = validate_arguments(
        SemanticSearchInput,
        arguments,
        suggestion="Provide a non-empty query; limit must be between 1 and 100.",
    )

    [query_vector] = await state.models.embed([validated.query])
    matches = await state.vector_index.query(
        query_vector,
        top_k=validated.limit or state.settings.search.default_limit,
        filter={"textbook_id": validated.textbook_id} if validated.textbook_id else None,
    )
    log.info("search_complete", match_count=len(matches), textbook_id=validated.textbook_id)

    return {
        "query": validated.query,
        "results": [
            {
                "id": match.id,
                "module_id": match.metadata.get("module_id", match.id),
                "score": match.score,
                "metadata": match.metadata,
            }
            for match in matches
        ],
    }
