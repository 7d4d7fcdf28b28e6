"""Wire-level integration tests for the stdio transport contract."""

from __future__ import annotations

import io
import json
import subprocess
import sys
from typing import TYPE_CHECKING, Any

from openstax_mcp.transport import run_stdio

if TYPE_CHECKING:
    from openstax_mcp.state import AppState

BOOK = "osbooks-college-physics-bundle"


async def _exchange(state: AppState, lines: list[str]) -> dict[Any, dict]:
    """Feed raw lines through run_stdio and index the responses by id."""
    reader = io.StringIO("".join(line + "\n" for line in lines))
    writer = io.StringIO()
    await run_stdio(state, reader=reader, writer=writer)
    responses = [json.loads(line) for line in writer.getvalue().splitlines()]
    return {response["id"]: response for response in responses}


def _request(request_id: Any, method: str, params: dict | None = None) -> str:
    message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return json.dumps(message)


class TestStdioExchange:
    async def test_session(self, app_state: AppState) -> None:
        responses = await _exchange(
            app_state,
            [
                _request(0, "initialize", {"protocolVersion": "2024-11-05"}),
                json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
                _request(1, "tools/list"),
                _request(
                    2,
                    "tools/call",
                    {"name": "get_textbook_structure", "arguments": {"textbook_id": BOOK}},
                ),
            ],
        )
        # The notification produces no line
        assert set(responses) == {0, 1, 2}
        assert responses[0]["result"]["protocolVersion"] == "2024-11-05"
        assert len(responses[1]["result"]["tools"]) == 7
        structure = json.loads(responses[2]["result"]["content"][0]["text"])
        assert [m["id"] for m in structure["modules"]] == ["m1", "m2", "m3"]

    async def test_every_response_is_jsonrpc_2(self, app_state: AppState) -> None:
        responses = await _exchange(app_state, [_request(i, "tools/list") for i in range(5)])
        assert set(responses) == set(range(5))
        assert all(r["jsonrpc"] == "2.0" for r in responses.values())

    async def test_parse_error_then_valid_request(self, app_state: AppState) -> None:
        responses = await _exchange(app_state, ["{broken", _request(3, "tools/list")])
        assert responses[None]["error"] == {"code": -32700, "message": "Parse error"}
        assert "result" in responses[3]

    async def test_undecodable_line_is_a_parse_error(self, app_state: AppState) -> None:
        reader = io.BytesIO(
            b"\xff\xfe garbage\n" + _request(7, "initialize").encode() + b"\n"
        )
        writer = io.StringIO()
        await run_stdio(app_state, reader=reader, writer=writer)
        responses = {
            r["id"]: r for r in (json.loads(line) for line in writer.getvalue().splitlines())
        }
        assert responses[None]["error"] == {"code": -32700, "message": "Parse error"}
        assert responses[7]["result"]["serverInfo"]["name"] == "openstax-mcp-server"

    async def test_blank_lines_ignored(self, app_state: AppState) -> None:
        responses = await _exchange(app_state, ["", "   ", _request(4, "tools/list")])
        assert set(responses) == {4}

    async def test_error_envelopes_keep_ids(self, app_state: AppState) -> None:
        responses = await _exchange(
            app_state,
            [
                _request("a", "unknown/method"),
                _request("b", "tools/call", {"name": "nope", "arguments": {}}),
                _request("c", "tools/call", {"name": "get_module_content", "arguments": {}}),
                _request(
                    "d",
                    "tools/call",
                    {
                        "name": "get_module_content",
                        "arguments": {"textbook_id": BOOK, "module_id": "m404"},
                    },
                ),
            ],
        )
        assert responses["a"]["error"]["code"] == -32601
        assert responses["b"]["error"] == {"code": -32602, "message": "Unknown tool: nope"}
        assert responses["c"]["error"]["code"] == -32603
        assert responses["c"]["error"]["data"]["code"] == "INVALID_INPUT"
        assert responses["d"]["error"] == {
            "code": -32603,
            "message": f"Tool execution error: Module m404 not found in textbook {BOOK}",
            "data": {
                "code": "MODULE_NOT_FOUND",
                "suggestion": "Call get_textbook_structure to list valid module ids.",
                "recoverable": False,
            },
        }


def test_server_process_answers_over_stdio(subprocess_env: dict[str, str]) -> None:
    """The installed entrypoint speaks JSON-RPC on stdout and logs only to stderr."""
    messages = [
        _request(0, "initialize", {"protocolVersion": "2024-11-05"}),
        _request(1, "tools/list"),
        _request(2, "tools/call", {"name": "list_textbooks", "arguments": {}}),
    ]
    proc = subprocess.run(
        [sys.executable, "-m", "openstax_mcp.server"],
        input="".join(m + "\n" for m in messages),
        capture_output=True,
        text=True,
        env=subprocess_env,
        timeout=60,
    )
    assert proc.returncode == 0, proc.stderr

    responses = {r["id"]: r for r in map(json.loads, proc.stdout.splitlines())}
    assert set(responses) == {0, 1, 2}
    assert responses[0]["result"]["serverInfo"]["name"] == "openstax-mcp-server"
    assert len(responses[1]["result"]["tools"]) == 7
    # The API host points at a private address, which the fetcher refuses
    assert responses[2]["error"]["code"] == -32603
    assert "server_started" in proc.stderr
