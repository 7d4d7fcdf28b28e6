"""Tool handler for get_module_content."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from openstax_mcp.content import get_module_content
from openstax_mcp.models.tools import GetModuleContentInput
from openstax_mcp.tools import validate_arguments

if TYPE_CHECKING:
    from openstax_mcp.state import AppState


async def handle(arguments: dict[str, Any], state: AppState) -> dict:
    """Handle a get_module_content tool call."""
    log = structlog.get_logger().bind(tool="get_module_content")
    log.info("handler_called")

    validated = validate_arguments(
        GetModuleContentInput,
        arguments,
        suggestion="Provide textbook_id and a module_id such as m42033.",
    )
    return await get_module_content(
        state,
        validated.textbook_id,
        validated.module_id,
        include_images=validated.include_images,
    )
