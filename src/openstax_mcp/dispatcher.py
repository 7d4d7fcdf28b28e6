"""JSON-RPC request dispatcher.

Routes the three supported methods (``initialize``, ``tools/list``,
``tools/call``) and converts every outcome into a response envelope carrying
the request's id. Nothing raised by a tool handler escapes ``handle``; the
transports only ever see dicts.

A Dispatcher holds no per-request state and is cheap to build, so transports
construct one per incoming message around the shared AppState.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    CallToolResult,
    ErrorData,
    Implementation,
    InitializeResult,
    ListToolsResult,
    ServerCapabilities,
    TextContent,
    Tool,
    ToolsCapability,
)

import openstax_mcp.tools.generate_jupyter_notebook as t_notebook
import openstax_mcp.tools.generate_practice_problems as t_problems
import openstax_mcp.tools.get_module_content as t_module
import openstax_mcp.tools.get_textbook_structure as t_structure
import openstax_mcp.tools.index_textbook_for_search as t_index
import openstax_mcp.tools.list_textbooks as t_list
import openstax_mcp.tools.semantic_search as t_search
from openstax_mcp import __version__
from openstax_mcp.errors import OpenStaxError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from openstax_mcp.state import AppState

    ToolHandler = Callable[[dict[str, Any], AppState], Awaitable[dict]]

log = structlog.get_logger()

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "openstax-mcp-server"


class Method(StrEnum):
    INITIALIZE = "initialize"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"


class ToolName(StrEnum):
    LIST_TEXTBOOKS = "list_textbooks"
    GET_TEXTBOOK_STRUCTURE = "get_textbook_structure"
    GET_MODULE_CONTENT = "get_module_content"
    SEMANTIC_SEARCH = "semantic_search"
    GENERATE_PRACTICE_PROBLEMS = "generate_practice_problems"
    GENERATE_JUPYTER_NOTEBOOK = "generate_jupyter_notebook"
    INDEX_TEXTBOOK_FOR_SEARCH = "index_textbook_for_search"


@dataclass(frozen=True)
class ToolSpec:
    description: str
    input_schema: dict[str, Any]
    handler: ToolHandler


# ---------------------------------------------------------------------------
# Tool catalog
# ---------------------------------------------------------------------------

_TEXTBOOK_ID = {"type": "string", "description": "Textbook repo name"}
_MODULE_ID = {"type": "string", "description": "Module ID (e.g., \"m12345\")"}

TOOLS: dict[ToolName, ToolSpec] = {
    ToolName.LIST_TEXTBOOKS: ToolSpec(
        description=(
            "Get comprehensive list of all OpenStax textbooks with metadata. "
            "Supports filtering by subject and language."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "subject": {
                    "type": "string",
                    "description": (
                        "Optional: Filter by subject area "
                        "(e.g., physics, chemistry, biology, math)"
                    ),
                },
                "language": {
                    "type": "string",
                    "enum": ["en", "es", "pl"],
                    "description": (
                        "Optional: Filter by language (en=English, es=Spanish, pl=Polish)"
                    ),
                },
            },
        },
        handler=t_list.handle,
    ),
    ToolName.GET_TEXTBOOK_STRUCTURE: ToolSpec(
        description=(
            "Get complete table of contents and structure from collection.xml. "
            "Returns chapter/module organization with caching."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "textbook_id": {
                    "type": "string",
                    "description": 'Textbook repo name (e.g., "osbooks-college-physics-bundle")',
                },
            },
            "required": ["textbook_id"],
        },
        handler=t_structure.handle,
    ),
    ToolName.GET_MODULE_CONTENT: ToolSpec(
        description=(
            "Retrieve full content of a specific chapter/module including text, "
            "equations, and images. Cached for performance."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "textbook_id": _TEXTBOOK_ID,
                "module_id": _MODULE_ID,
                "include_images": {
                    "type": "boolean",
                    "description": "Include image URLs from media folder",
                    "default": True,
                },
            },
            "required": ["textbook_id", "module_id"],
        },
        handler=t_module.handle,
    ),
    ToolName.SEMANTIC_SEARCH: ToolSpec(
        description=(
            "Search textbook content using AI semantic understanding. "
            "Returns most relevant modules based on natural language query."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Natural language search query"},
                "textbook_id": {
                    "type": "string",
                    "description": "Optional: Limit to specific textbook",
                },
                "limit": {
                    "type": "number",
                    "description": "Number of results (default: 5)",
                    "default": 5,
                },
            },
            "required": ["query"],
        },
        handler=t_search.handle,
    ),
    ToolName.GENERATE_PRACTICE_PROBLEMS: ToolSpec(
        description=(
            "Generate AI-powered practice problems for a module with solutions. "
            "Supports multiple difficulty levels."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "textbook_id": _TEXTBOOK_ID,
                "module_id": _MODULE_ID,
                "difficulty": {
                    "type": "string",
                    "enum": ["easy", "medium", "hard"],
                    "description": "Problem difficulty",
                    "default": "medium",
                },
                "count": {
                    "type": "number",
                    "description": "Number of problems to generate",
                    "default": 5,
                },
            },
            "required": ["textbook_id", "module_id"],
        },
        handler=t_problems.handle,
    ),
    ToolName.GENERATE_JUPYTER_NOTEBOOK: ToolSpec(
        description=(
            "Generate .ipynb Jupyter notebook with examples, exercises, and code cells "
            "for a module. Perfect for interactive learning."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "textbook_id": _TEXTBOOK_ID,
                "module_id": _MODULE_ID,
                "include_solutions": {
                    "type": "boolean",
                    "description": "Include solution cells",
                    "default": True,
                },
            },
            "required": ["textbook_id", "module_id"],
        },
        handler=t_notebook.handle,
    ),
    ToolName.INDEX_TEXTBOOK_FOR_SEARCH: ToolSpec(
        description=(
            "Index a textbook's content into vector database for semantic search. "
            "Run this before using semantic_search on a new textbook."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "textbook_id": {"type": "string", "description": "Textbook repo name to index"},
                "max_modules": {
                    "type": "number",
                    "description": "Max modules to index (default: 20)",
                    "default": 20,
                },
            },
            "required": ["textbook_id"],
        },
        handler=t_index.handle,
    ),
}


def list_tools() -> list[Tool]:
    return [
        Tool(name=str(name), description=spec.description, inputSchema=spec.input_schema)
        for name, spec in TOOLS.items()
    ]


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def success_response(request_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(
    request_id: Any, code: int, message: str, data: dict[str, Any] | None = None
) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": _dump(ErrorData(code=code, message=message, data=data)),
    }


def parse_error_response() -> dict[str, Any]:
    return error_response(None, PARSE_ERROR, "Parse error")


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class Dispatcher:
    """Stateless JSON-RPC router over the shared collaborators in AppState."""

    def __init__(self, state: AppState) -> None:
        self._state = state
        self._methods: dict[Method, Callable[[Any, Any], Awaitable[dict[str, Any]]]] = {
            Method.INITIALIZE: self._initialize,
            Method.TOOLS_LIST: self._tools_list,
            Method.TOOLS_CALL: self._tools_call,
        }

    async def handle_raw(self, raw: str | bytes) -> dict[str, Any] | None:
        """Parse a raw message and dispatch it.

        Input that is not a JSON object yields a parse error with a null id.
        """
        try:
            message = json.loads(raw)
        except ValueError:
            log.warning("request_parse_error")
            return parse_error_response()
        if not isinstance(message, dict):
            log.warning("request_parse_error", reason="not_an_object")
            return parse_error_response()
        return await self.handle(message)

    async def handle(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Dispatch one decoded message. Notifications (no ``id``) return ``None``."""
        method_name = message.get("method")
        if "id" not in message:
            log.debug("notification_received", method=method_name)
            return None
        request_id = message["id"]

        try:
            method = Method(method_name)
        except (ValueError, TypeError):
            log.info("method_not_found", method=method_name)
            return error_response(request_id, METHOD_NOT_FOUND, f"Method not found: {method_name}")

        try:
            return await self._methods[method](request_id, message.get("params"))
        except Exception as exc:
            log.error("request_unexpected_error", method=method_name, exc_info=True)
            return error_response(request_id, INTERNAL_ERROR, f"Internal error: {_describe(exc)}")

    async def _initialize(self, request_id: Any, params: Any) -> dict[str, Any]:
        result = InitializeResult(
            protocolVersion=PROTOCOL_VERSION,
            capabilities=ServerCapabilities(tools=ToolsCapability()),
            serverInfo=Implementation(name=SERVER_NAME, version=__version__),
        )
        return success_response(request_id, _dump(result))

    async def _tools_list(self, request_id: Any, params: Any) -> dict[str, Any]:
        return success_response(request_id, _dump(ListToolsResult(tools=list_tools())))

    async def _tools_call(self, request_id: Any, params: Any) -> dict[str, Any]:
        params = params if isinstance(params, dict) else {}
        name = params.get("name")
        try:
            tool = ToolName(name)
        except (ValueError, TypeError):
            log.info("unknown_tool", tool=name)
            return error_response(request_id, INVALID_PARAMS, f"Unknown tool: {name}")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return error_response(request_id, INVALID_PARAMS, "Tool arguments must be an object")

        try:
            result = await TOOLS[tool].handler(arguments, self._state)
        except OpenStaxError as exc:
            log.warning(
                "tool_error",
                tool=str(tool),
                code=exc.code,
                message=exc.message,
                recoverable=exc.recoverable,
            )
            return error_response(
                request_id,
                INTERNAL_ERROR,
                f"Tool execution error: {exc.message}",
                data=exc.error_data(),
            )
        except Exception as exc:
            log.error("tool_unexpected_error", tool=str(tool), exc_info=True)
            return error_response(
                request_id, INTERNAL_ERROR, f"Tool execution error: {_describe(exc)}"
            )

        envelope = CallToolResult(
            content=[TextContent(type="text", text=json.dumps(result, indent=2))]
        )
        return success_response(request_id, _dump(envelope))


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
