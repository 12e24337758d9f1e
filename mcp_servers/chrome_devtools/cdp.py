"""Low-level Chrome DevTools Protocol connection (asyncio + websockets).

One browser-level WebSocket carries every target via flat sessions
(`Target.attachToTarget(flatten=True)`), so commands and events are tagged
with an optional `sessionId`.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger("mcp.devtools.cdp")

EventCallback = Callable[[dict[str, Any], "str | None"], None]

DEFAULT_COMMAND_TIMEOUT = 30.0


class CdpError(Exception):
    """CDP command failed or the connection is gone."""

    def __init__(self, message: str, *, method: str | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.code = code


class CdpConnection:
    """Browser-level CDP WebSocket connection."""

    def __init__(self, ws: ClientConnection, ws_url: str) -> None:
        self.ws = ws
        self.ws_url = ws_url
        self._next_id = 1
        self._pending: dict[int, tuple[str, asyncio.Future[dict[str, Any]]]] = {}
        self._listeners: dict[str, list[EventCallback]] = {}
        self._closed = False
        self._reader = asyncio.get_running_loop().create_task(self._read_loop(), name="cdp-reader")

    @classmethod
    async def connect(
        cls,
        ws_url: str,
        *,
        headers: dict[str, str] | None = None,
        open_timeout: float = 10.0,
    ) -> CdpConnection:
        try:
            ws = await connect(
                ws_url,
                additional_headers=headers or None,
                max_size=None,
                open_timeout=open_timeout,
                ping_interval=None,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise CdpError(f"Could not connect to {ws_url}: {exc}") from exc
        logger.debug("cdp connected %s", ws_url)
        return cls(ws, ws_url)

    @property
    def closed(self) -> bool:
        return self._closed

    def on(self, event: str, callback: EventCallback) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: EventCallback) -> None:
        callbacks = self._listeners.get(event)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        session_id: str | None = None,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> dict[str, Any]:
        if self._closed:
            raise CdpError("Connection closed", method=method)

        msg_id = self._next_id
        self._next_id += 1
        payload: dict[str, Any] = {"id": msg_id, "method": method, "params": params or {}}
        if session_id:
            payload["sessionId"] = session_id

        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = (method, fut)
        try:
            await self.ws.send(json.dumps(payload))
            return await asyncio.wait_for(fut, timeout=timeout)
        except ConnectionClosed as exc:
            raise CdpError(f"Connection closed while sending {method}", method=method) from exc
        except asyncio.TimeoutError as exc:
            raise CdpError(f"{method} timed out after {timeout:g}s", method=method) from exc
        finally:
            self._pending.pop(msg_id, None)

    async def close(self) -> None:
        self._closed = True
        with contextlib.suppress(Exception):
            await self.ws.close()
        self._reader.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await self._reader
        self._fail_pending("Connection closed")

    async def _read_loop(self) -> None:
        try:
            async for raw in self.ws:
                try:
                    msg = json.loads(raw)
                except ValueError:
                    logger.debug("cdp: dropping non-JSON frame")
                    continue
                if not isinstance(msg, dict):
                    continue
                if "id" in msg:
                    self._resolve(msg)
                elif isinstance(msg.get("method"), str):
                    self._emit(msg["method"], msg.get("params") or {}, msg.get("sessionId"))
        except ConnectionClosed:
            pass
        finally:
            self._closed = True
            self._fail_pending("Connection closed")

    def _resolve(self, msg: dict[str, Any]) -> None:
        entry = self._pending.get(msg["id"])
        if entry is None:
            return
        method, fut = entry
        if fut.done():
            return
        error = msg.get("error")
        if isinstance(error, dict):
            fut.set_exception(
                CdpError(f"{method}: {error.get('message', 'unknown error')}", method=method, code=error.get("code"))
            )
        else:
            fut.set_result(msg.get("result") or {})

    def _emit(self, event: str, params: dict[str, Any], session_id: str | None) -> None:
        for callback in list(self._listeners.get(event, ())):
            try:
                callback(params, session_id)
            except Exception:  # noqa: BLE001
                # A broken listener must never take the reader down.
                logger.exception("cdp listener failed for %s", event)

    def _fail_pending(self, reason: str) -> None:
        for method, fut in list(self._pending.values()):
            if not fut.done():
                fut.set_exception(CdpError(reason, method=method))
