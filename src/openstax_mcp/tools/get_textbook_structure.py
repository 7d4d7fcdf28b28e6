"""Tool handler for get_textbook_structure."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from openstax_mcp.content import get_textbook_structure
from openstax_mcp.models.tools import TextbookInput
from openstax_mcp.tools import validate_arguments

if TYPE_CHECKING:
    from openstax_mcp.state import AppState


async def handle(arguments: dict[str, Any], state: AppState) -> dict:
    """Handle a get_textbook_structure tool call."""
    log = structlog.get_logger().bind(tool="get_textbook_structure")
    log.info("handler_called")

    validated = validate_arguments(
        TextbookInput,
        arguments,
        suggestion="Provide textbook_id as a repository name, e.g. osbooks-college-physics-bundle.",
    )
    return await get_textbook_structure(state, validated.textbook_id)
