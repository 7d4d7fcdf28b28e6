"""Tool handler for list_textbooks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from openstax_mcp.content import list_textbooks
from openstax_mcp.models.tools import ListTextbooksInput
from openstax_mcp.tools import validate_arguments

if TYPE_CHECKING:
    from openstax_mcp.state import AppState


async def handle(arguments: dict[str, Any], state: AppState) -> dict:
    """Handle a list_textbooks tool call."""
    log = structlog.get_logger().bind(tool="list_textbooks")
    log.info("handler_called")

    validated = validate_arguments(
        ListTextbooksInput,
        arguments,
        suggestion="subject is free text; language must be one of en, es, pl.",
    )
    result = await list_textbooks(state, subject=validated.subject, language=validated.language)
    log.info("list_complete", count=result["count"], from_cache=result["from_cache"])
    return result
