"""Streamable HTTP front end (Starlette app served by uvicorn).

Routes:
- `GET /health`: liveness probe, never touches the dispatcher.
- `POST /mcp`: JSON-RPC message or batch; `initialize` opens the session.
- `GET /mcp`: keepalive event stream for the open session.
- `DELETE /mcp`: terminate the session so a new client can initialize.

There is one transport session at a time; a second `initialize` is rejected
until the first is terminated. Messages go through the shared `McpProtocol`,
hence one dispatcher and one browser session.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .server.contract import SERVICE_NAME, __version__
from .server.protocol import INVALID_REQUEST, PARSE_ERROR, McpProtocol, error_response, is_request

logger = logging.getLogger("mcp.devtools.http")

SESSION_HEADER = "mcp-session-id"
SSE_KEEPALIVE_SECONDS = 15.0

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": (
        "Origin, X-Requested-With, Content-Type, Accept, Authorization, mcp-session-id, mcp-protocol-version"
    ),
    "Access-Control-Expose-Headers": "mcp-session-id",
}


# ─────────────────────────────────────────────────────────────────────────────
# Sessions
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class HttpSession:
    session_id: str
    created_at: datetime
    closed: asyncio.Event = field(default_factory=asyncio.Event)


class HttpSessionRegistry:
    """The single transport session, keyed by `mcp-session-id`.

    Only one client may be initialized at a time; terminating the session
    lets the next `initialize` open a fresh one.
    """

    def __init__(self) -> None:
        self._session: HttpSession | None = None

    @property
    def current(self) -> HttpSession | None:
        return self._session

    def open(self) -> HttpSession | None:
        """Open the session, or return None when one is already open."""
        if self._session is not None:
            return None
        self._session = HttpSession(session_id=str(uuid.uuid4()), created_at=datetime.now(timezone.utc))
        logger.info("session opened %s", self._session.session_id)
        return self._session

    def get(self, session_id: str) -> HttpSession | None:
        if self._session is not None and self._session.session_id == session_id:
            return self._session
        return None

    def terminate(self, session_id: str) -> bool:
        session = self.get(session_id)
        if session is None:
            return False
        self._session = None
        session.closed.set()
        logger.info("session closed %s", session_id)
        return True

    def __contains__(self, session_id: object) -> bool:
        return isinstance(session_id, str) and self.get(session_id) is not None

    def __len__(self) -> int:
        return 0 if self._session is None else 1


# ─────────────────────────────────────────────────────────────────────────────
# Middleware
# ─────────────────────────────────────────────────────────────────────────────


class CorsMiddleware:
    """Adds CORS headers to every response and answers preflights directly.

    Pure ASGI so streaming responses pass through untouched.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        logger.info("%s %s", method, scope.get("path", ""))
        cors = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in CORS_HEADERS.items()]

        if method == "OPTIONS":
            await send({"type": "http.response.start", "status": 200, "headers": [*cors, (b"content-length", b"0")]})
            await send({"type": "http.response.body", "body": b""})
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                message = {**message, "headers": [*message.get("headers", []), *cors]}
            await send(message)

        await self.app(scope, receive, send_with_cors)


# ─────────────────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────────────────


async def session_events(session: HttpSession, *, keepalive: float = SSE_KEEPALIVE_SECONDS) -> AsyncIterator[str]:
    """SSE body for GET /mcp: keepalive comments until the session is terminated.

    Nothing is sent server-initiated; the stream ends as soon as
    `session.closed` is set.
    """
    while not session.closed.is_set():
        try:
            await asyncio.wait_for(session.closed.wait(), timeout=keepalive)
        except asyncio.TimeoutError:
            yield ": keepalive\n\n"


def _session_error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"jsonrpc": "2.0", "id": None, "error": {"code": -32000, "message": message}}, status_code=status)


class McpHttpEndpoint:
    def __init__(self, protocol: McpProtocol, sessions: HttpSessionRegistry) -> None:
        self.protocol = protocol
        self.sessions = sessions

    def _lookup(self, request: Request) -> HttpSession | JSONResponse:
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            return _session_error(400, "Bad Request: mcp-session-id header is required")
        session = self.sessions.get(session_id)
        if session is None:
            return _session_error(404, "Session not found")
        return session

    async def handle(self, request: Request) -> Response:
        if request.method == "POST":
            return await self.post(request)
        if request.method == "GET":
            return await self.stream(request)
        return await self.delete(request)

    async def post(self, request: Request) -> Response:
        body = await request.body()
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            return JSONResponse(error_response(None, PARSE_ERROR, f"Parse error: {exc}"), status_code=400)

        batch = isinstance(payload, list)
        messages = payload if batch else [payload]
        if not messages:
            return JSONResponse(error_response(None, INVALID_REQUEST, "Invalid Request"), status_code=400)

        initializing = any(isinstance(m, dict) and m.get("method") == "initialize" for m in messages)
        if initializing:
            if len(messages) > 1:
                return JSONResponse(
                    error_response(None, INVALID_REQUEST, "initialize must not be batched"), status_code=400
                )
            opened = self.sessions.open()
            if opened is None:
                request_id = messages[0].get("id") if isinstance(messages[0], dict) else None
                return JSONResponse(
                    error_response(request_id, INVALID_REQUEST, "Invalid Request: Server already initialized"),
                    status_code=400,
                )
            session = opened
        else:
            found = self._lookup(request)
            if isinstance(found, JSONResponse):
                return found
            session = found

        headers = {SESSION_HEADER: session.session_id}
        if not any(is_request(m) for m in messages):
            for message in messages:
                await self.protocol.handle(message)
            return Response(status_code=202, headers=headers)

        replies = []
        for message in messages:
            reply = await self.protocol.handle(message)
            if reply is not None:
                replies.append(reply)
        content: Any = replies if batch else replies[0]
        return JSONResponse(content, headers=headers)

    async def stream(self, request: Request) -> Response:
        found = self._lookup(request)
        if isinstance(found, JSONResponse):
            return found
        session = found
        return StreamingResponse(
            session_events(session),
            media_type="text/event-stream",
            headers={SESSION_HEADER: session.session_id, "Cache-Control": "no-cache"},
        )

    async def delete(self, request: Request) -> Response:
        found = self._lookup(request)
        if isinstance(found, JSONResponse):
            return found
        self.sessions.terminate(found.session_id)
        return Response(status_code=200)


async def health(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": __version__,
            "mode": "http",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


def create_app(protocol: McpProtocol, *, sessions: HttpSessionRegistry | None = None) -> Starlette:
    """Build the ASGI app; the session registry is exposed as `app.state.sessions`."""
    sessions = sessions or HttpSessionRegistry()
    endpoint = McpHttpEndpoint(protocol, sessions)
    app = Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route("/mcp", endpoint.handle, methods=["GET", "POST", "DELETE"]),
        ]
    )
    app.state.sessions = sessions
    app.add_middleware(CorsMiddleware)
    return app


async def run_http(app: Starlette, *, host: str, port: int) -> None:
    config = uvicorn.Config(app, host=host, port=port, log_level="info", timeout_graceful_shutdown=10)
    server = uvicorn.Server(config)
    logger.info("Chrome DevTools MCP Server listening on http://%s:%s", host, port)
    logger.info("Health check: http://%s:%s/health", host, port)
    logger.info("MCP endpoint: http://%s:%s/mcp", host, port)
    await server.serve()
