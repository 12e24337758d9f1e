from __future__ import annotations

from typing import Any

import pytest
from starlette.testclient import TestClient

from conftest import FakeContext

INIT = {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2025-06-18"}}


class _Sessions:
    def __init__(self) -> None:
        self.calls = 0

    async def resolve(self, request: Any) -> Any:
        self.calls += 1
        return FakeContext()


@pytest.fixture
def sessions() -> _Sessions:
    return _Sessions()


@pytest.fixture
def client(sessions: _Sessions) -> TestClient:
    from mcp_servers.chrome_devtools.browser import LaunchRequest
    from mcp_servers.chrome_devtools.http_app import create_app
    from mcp_servers.chrome_devtools.server.dispatch import ToolDispatcher
    from mcp_servers.chrome_devtools.server.protocol import McpProtocol
    from mcp_servers.chrome_devtools.server.registry import ToolRegistry
    from mcp_servers.chrome_devtools.server.types import ToolAnnotations, ToolDefinition

    async def ok(invocation: Any, response: Any, context: Any) -> None:
        response.append_response_line("ok")

    tool = ToolDefinition(
        name="list_pages",
        description="pages",
        schema={"type": "object", "properties": {}},
        annotations=ToolAnnotations(category="Navigation automation", read_only_hint=True),
        handler=ok,
    )
    protocol = McpProtocol(ToolDispatcher(ToolRegistry([tool]), sessions, LaunchRequest()))
    return TestClient(create_app(protocol))


def _open_session(client: TestClient) -> str:
    res = client.post("/mcp", json=INIT)
    assert res.status_code == 200
    session_id = res.headers["mcp-session-id"]
    assert session_id
    return session_id


def test_health_reports_service(client: TestClient, sessions: _Sessions) -> None:
    res = client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["service"] == "Chrome DevTools MCP Server"
    assert body["mode"] == "http"
    assert body["version"]
    assert body["timestamp"]
    assert res.headers["access-control-allow-origin"] == "*"
    assert sessions.calls == 0


def test_options_preflight_short_circuits(client: TestClient) -> None:
    res = client.options("/anything")
    assert res.status_code == 200
    assert res.content == b""
    assert res.headers["access-control-allow-methods"] == "GET, POST, DELETE, OPTIONS"
    assert "mcp-session-id" in res.headers["access-control-allow-headers"]
    assert res.headers["access-control-expose-headers"] == "mcp-session-id"


def test_initialize_opens_session_and_tool_call_uses_it(client: TestClient, sessions: _Sessions) -> None:
    session_id = _open_session(client)

    res = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"name": "list_pages", "arguments": {}}},
        headers={"mcp-session-id": session_id},
    )
    assert res.status_code == 200
    assert res.json()["result"]["content"][0]["text"] == "# list_pages response\nok"
    assert res.headers["mcp-session-id"] == session_id
    assert sessions.calls == 1


def test_second_initialize_is_rejected_until_delete(client: TestClient) -> None:
    session_id = _open_session(client)

    res = client.post("/mcp", json={**INIT, "id": 7})
    assert res.status_code == 400
    assert res.json()["id"] == 7
    assert res.json()["error"]["code"] == -32600
    assert "already initialized" in res.json()["error"]["message"]
    assert len(client.app.state.sessions) == 1

    assert client.delete("/mcp", headers={"mcp-session-id": session_id}).status_code == 200
    assert len(client.app.state.sessions) == 0
    assert _open_session(client) != session_id


def test_missing_session_header_is_400(client: TestClient) -> None:
    res = client.post("/mcp", json={"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
    assert res.status_code == 400


def test_unknown_session_is_404(client: TestClient) -> None:
    res = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
        headers={"mcp-session-id": "not-a-session"},
    )
    assert res.status_code == 404


def test_notification_only_body_is_202(client: TestClient) -> None:
    session_id = _open_session(client)
    res = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "method": "notifications/initialized"},
        headers={"mcp-session-id": session_id},
    )
    assert res.status_code == 202
    assert res.content == b""


def test_batch_returns_array(client: TestClient) -> None:
    session_id = _open_session(client)
    res = client.post(
        "/mcp",
        json=[
            {"jsonrpc": "2.0", "id": 2, "method": "ping"},
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            {"jsonrpc": "2.0", "id": 3, "method": "tools/list"},
        ],
        headers={"mcp-session-id": session_id},
    )
    assert res.status_code == 200
    assert [r["id"] for r in res.json()] == [2, 3]


def test_malformed_json_is_parse_error(client: TestClient) -> None:
    res = client.post("/mcp", content=b"{oops", headers={"content-type": "application/json"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == -32700


def test_delete_terminates_session(client: TestClient) -> None:
    session_id = _open_session(client)
    assert client.delete("/mcp", headers={"mcp-session-id": session_id}).status_code == 200
    res = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": 2, "method": "ping"},
        headers={"mcp-session-id": session_id},
    )
    assert res.status_code == 404
    assert client.delete("/mcp", headers={"mcp-session-id": session_id}).status_code == 404


def test_event_stream_requires_valid_session(client: TestClient) -> None:
    assert client.get("/mcp").status_code == 400
    assert client.get("/mcp", headers={"mcp-session-id": "nope"}).status_code == 404


def test_session_registry_holds_one_session() -> None:
    from mcp_servers.chrome_devtools.http_app import HttpSessionRegistry

    registry = HttpSessionRegistry()
    session = registry.open()
    assert session is not None
    assert registry.current is session
    assert session.session_id in registry
    assert registry.open() is None
    assert len(registry) == 1

    assert not registry.terminate("other")
    assert registry.terminate(session.session_id)
    assert session.closed.is_set()
    assert registry.current is None
    assert not registry.terminate(session.session_id)
    assert len(registry) == 0


def test_event_stream_sends_keepalives_until_terminated() -> None:
    import asyncio

    from mcp_servers.chrome_devtools.http_app import HttpSessionRegistry, session_events

    async def _main() -> list[str]:
        registry = HttpSessionRegistry()
        session = registry.open()
        assert session is not None
        chunks: list[str] = []

        async def consume() -> None:
            async for chunk in session_events(session, keepalive=0.01):
                chunks.append(chunk)

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.05)
        registry.terminate(session.session_id)
        await asyncio.wait_for(task, timeout=1)
        return chunks

    chunks = asyncio.run(_main())
    assert chunks
    assert set(chunks) == {": keepalive\n\n"}


def test_event_stream_ends_promptly_after_terminate() -> None:
    import asyncio

    from mcp_servers.chrome_devtools.http_app import HttpSessionRegistry, session_events

    async def _main() -> list[str]:
        registry = HttpSessionRegistry()
        session = registry.open()
        assert session is not None

        async def consume() -> list[str]:
            return [chunk async for chunk in session_events(session, keepalive=60)]

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        registry.terminate(session.session_id)
        # Well under the keepalive interval.
        return await asyncio.wait_for(task, timeout=1)

    assert asyncio.run(_main()) == []
