"""Tool handlers.

One module per tool, each exposing ``async def handle(arguments, state) -> dict``.
Handlers validate their own arguments, delegate to the pipeline, and return
plain JSON-serialisable dicts. No MCP imports; dispatcher.py handles the
protocol wiring.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from openstax_mcp.errors import ErrorCode, OpenStaxError

InputT = TypeVar("InputT", bound=BaseModel)


def validate_arguments(model: type[InputT], arguments: dict[str, Any], suggestion: str) -> InputT:
    """Validate raw tool arguments, raising INVALID_INPUT on failure."""
    try:
        return model.model_validate(arguments)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in exc.errors()
        )
        raise OpenStaxError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid arguments: {details}",
            suggestion=suggestion,
        ) from exc
