"""Transports: plain HTTP (Starlette + uvicorn) and line-delimited stdio.

Both transports are thin: they move raw JSON-RPC messages in and out and hand
each one to a fresh Dispatcher. All protocol decisions live in dispatcher.py.
"""

from __future__ import annotations

import asyncio
import json
import sys
from contextlib import asynccontextmanager
from typing import IO, TYPE_CHECKING, Any, TextIO

import structlog
import uvicorn
from mcp.types import PARSE_ERROR
from starlette.applications import Starlette
from starlette.datastructures import MutableHeaders
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from openstax_mcp import __version__
from openstax_mcp.dispatcher import SERVER_NAME, Dispatcher

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from contextlib import AbstractAsyncContextManager

    from starlette.requests import Request
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

    from openstax_mcp.config import Settings
    from openstax_mcp.state import AppState

log = structlog.get_logger()

PROJECT_URL = "https://github.com/pythpythpython/openstax-mcp-server"

_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class CORSHeaderMiddleware:
    """Pure ASGI middleware giving every HTTP response a permissive CORS header.

    Preflight (``OPTIONS``) requests are answered here without reaching the
    app. Implemented as pure ASGI (not BaseHTTPMiddleware) so response bodies
    are never buffered by the middleware layer.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            await Response(status_code=204, headers=_PREFLIGHT_HEADERS)(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers["Access-Control-Allow-Origin"] = "*"
            await send(message)

        await self.app(scope, receive, send_with_cors)


async def _endpoint(request: Request) -> Response:
    if request.url.path.endswith("/health"):
        return JSONResponse({"status": "healthy", "service": SERVER_NAME})

    if request.method == "POST":
        state: AppState = request.app.state.openstax
        body = await request.body()
        response = await Dispatcher(state).handle_raw(body)
        if response is None:
            return Response(status_code=202)
        is_parse_error = response["id"] is None and response.get("error", {}).get("code") == (
            PARSE_ERROR
        )
        return JSONResponse(response, status_code=400 if is_parse_error else 200)

    return JSONResponse(
        {"service": "OpenStax MCP Server", "version": __version__, "docs": PROJECT_URL}
    )


def create_http_app(
    state: AppState | None = None,
    *,
    lifespan: Callable[[], AbstractAsyncContextManager[AppState]] | None = None,
) -> ASGIApp:
    """Build the ASGI app.

    Pass ``state`` to serve an already-built AppState (tests), or ``lifespan``
    to have the app create and tear down its own collaborators.
    """

    @asynccontextmanager
    async def app_lifespan(app: Starlette) -> AsyncIterator[None]:
        if lifespan is None:
            yield
            return
        async with lifespan() as built:
            app.state.openstax = built
            yield

    # Preflight OPTIONS never reaches the router; CORSHeaderMiddleware answers it
    route = Route("/{path:path}", _endpoint, methods=["GET", "HEAD", "POST"])
    app = Starlette(routes=[route], lifespan=app_lifespan)
    if state is not None:
        app.state.openstax = state
    return CORSHeaderMiddleware(app)


def run_http_server(
    settings: Settings,
    lifespan: Callable[[], AbstractAsyncContextManager[AppState]],
) -> None:
    """Serve JSON-RPC over HTTP POST until interrupted."""
    log.bind(transport="http").info("http_server_starting", host=settings.server.host)
    uvicorn.run(
        create_http_app(lifespan=lifespan),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


# ---------------------------------------------------------------------------
# stdio
# ---------------------------------------------------------------------------


async def run_stdio(
    state: AppState,
    reader: IO[Any] | None = None,
    writer: TextIO | None = None,
) -> None:
    """Serve line-delimited JSON-RPC until the reader reaches EOF.

    stdin is read as bytes so that a line which is not valid UTF-8 becomes a
    parse error response instead of ending the loop. Each line is dispatched
    as its own task, so a slow tool call does not hold up later requests.
    Responses are written one per line, in completion order; notifications
    produce no output.
    """
    reader = reader or sys.stdin.buffer
    writer = writer or sys.stdout
    pending: set[asyncio.Task[None]] = set()

    async def answer(line: str | bytes) -> None:
        response = await Dispatcher(state).handle_raw(line)
        if response is not None:
            writer.write(json.dumps(response) + "\n")
            writer.flush()

    while True:
        line = await asyncio.to_thread(reader.readline)
        if not line:
            break
        if not line.strip():
            continue
        task = asyncio.create_task(answer(line))
        pending.add(task)
        task.add_done_callback(pending.discard)

    if pending:
        await asyncio.gather(*pending)
    log.info("stdio_input_closed")
