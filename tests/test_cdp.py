from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest


class FakeWebSocket:
    """Async-iterable websocket double; `responder` builds replies to sent commands."""

    def __init__(self, responder: Any = None) -> None:
        self.sent: list[dict[str, Any]] = []
        self.incoming: asyncio.Queue[str | None] = asyncio.Queue()
        self.responder = responder
        self.closed = False

    async def send(self, raw: str) -> None:
        msg = json.loads(raw)
        self.sent.append(msg)
        if self.responder is not None:
            reply = self.responder(msg)
            if reply is not None:
                self.incoming.put_nowait(json.dumps(reply))

    def push(self, msg: Any) -> None:
        self.incoming.put_nowait(msg if isinstance(msg, str) else json.dumps(msg))

    def drop(self) -> None:
        self.incoming.put_nowait(None)

    async def close(self) -> None:
        self.closed = True
        self.drop()

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> str:
        item = await self.incoming.get()
        if item is None:
            raise StopAsyncIteration
        return item


def test_send_routes_response_by_id() -> None:
    from mcp_servers.chrome_devtools.cdp import CdpConnection

    async def _main() -> None:
        ws = FakeWebSocket(lambda msg: {"id": msg["id"], "result": {"echo": msg["method"]}})
        conn = CdpConnection(ws, "ws://test")  # type: ignore[arg-type]
        first, second = await asyncio.gather(conn.send("Target.getTargets"), conn.send("Browser.getVersion"))
        assert first == {"echo": "Target.getTargets"}
        assert second == {"echo": "Browser.getVersion"}
        assert [m["id"] for m in ws.sent] == [1, 2]
        await conn.close()
        assert conn.closed

    asyncio.run(_main())


def test_session_id_is_attached() -> None:
    from mcp_servers.chrome_devtools.cdp import CdpConnection

    async def _main() -> None:
        ws = FakeWebSocket(lambda msg: {"id": msg["id"], "result": {}})
        conn = CdpConnection(ws, "ws://test")  # type: ignore[arg-type]
        await conn.send("Page.enable", session_id="S1")
        assert ws.sent[0]["sessionId"] == "S1"
        assert ws.sent[0]["params"] == {}
        await conn.close()

    asyncio.run(_main())


def test_protocol_error_raises_cdp_error() -> None:
    from mcp_servers.chrome_devtools.cdp import CdpConnection, CdpError

    async def _main() -> None:
        ws = FakeWebSocket(lambda msg: {"id": msg["id"], "error": {"code": -32000, "message": "No target"}})
        conn = CdpConnection(ws, "ws://test")  # type: ignore[arg-type]
        with pytest.raises(CdpError) as exc:
            await conn.send("Target.activateTarget", {"targetId": "x"})
        assert exc.value.code == -32000
        assert exc.value.method == "Target.activateTarget"
        assert "No target" in str(exc.value)
        await conn.close()

    asyncio.run(_main())


def test_events_reach_listeners_with_session() -> None:
    from mcp_servers.chrome_devtools.cdp import CdpConnection

    async def _main() -> list[Any]:
        seen: list[Any] = []
        ws = FakeWebSocket()
        conn = CdpConnection(ws, "ws://test")  # type: ignore[arg-type]

        def listener(params: dict[str, Any], session_id: str | None) -> None:
            seen.append((params, session_id))

        def broken(params: dict[str, Any], session_id: str | None) -> None:
            raise RuntimeError("listener bug")

        conn.on("Runtime.consoleAPICalled", broken)
        conn.on("Runtime.consoleAPICalled", listener)
        ws.push("not json")
        ws.push({"method": "Runtime.consoleAPICalled", "params": {"type": "log"}, "sessionId": "S1"})
        await asyncio.sleep(0.01)
        conn.off("Runtime.consoleAPICalled", broken)
        ws.push({"method": "Runtime.consoleAPICalled", "params": {"type": "warning"}})
        await asyncio.sleep(0.01)
        await conn.close()
        return seen

    assert asyncio.run(_main()) == [({"type": "log"}, "S1"), ({"type": "warning"}, None)]


def test_disconnect_fails_pending_calls() -> None:
    from mcp_servers.chrome_devtools.cdp import CdpConnection, CdpError

    async def _main() -> None:
        ws = FakeWebSocket()
        conn = CdpConnection(ws, "ws://test")  # type: ignore[arg-type]
        pending = asyncio.create_task(conn.send("Page.navigate", {"url": "https://example.com"}))
        await asyncio.sleep(0)
        ws.drop()
        with pytest.raises(CdpError, match="Connection closed"):
            await pending
        assert conn.closed
        with pytest.raises(CdpError):
            await conn.send("Page.reload")

    asyncio.run(_main())


def test_command_timeout() -> None:
    from mcp_servers.chrome_devtools.cdp import CdpConnection, CdpError

    async def _main() -> None:
        ws = FakeWebSocket()
        conn = CdpConnection(ws, "ws://test")  # type: ignore[arg-type]
        with pytest.raises(CdpError, match="timed out"):
            await conn.send("Page.captureScreenshot", timeout=0.01)
        await conn.close()

    asyncio.run(_main())


def test_connect_failure_is_cdp_error() -> None:
    from mcp_servers.chrome_devtools.cdp import CdpConnection, CdpError

    async def _main() -> None:
        # Port 9 (discard) on localhost is not a DevTools endpoint.
        with pytest.raises(CdpError, match="Could not connect"):
            await CdpConnection.connect("ws://127.0.0.1:9/devtools/browser/x", open_timeout=1)

    asyncio.run(_main())
