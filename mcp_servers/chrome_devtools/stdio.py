"""Newline-delimited JSON-RPC over stdin/stdout.

Each message is handled in its own task so pipelined tool calls queue on the
dispatcher's gate in arrival order instead of blocking the reader.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import IO, Any

from .server.protocol import INVALID_REQUEST, PARSE_ERROR, McpProtocol, error_response
from .server.redaction import redact_jsonrpc_for_dump, redact_jsonrpc_for_log

logger = logging.getLogger("mcp.devtools.stdio")


def _dump_frame(direction: bytes, payload: Any, raw: bytes) -> None:
    dump_path = os.environ.get("MCP_DUMP_FRAMES")
    if not dump_path:
        return
    if dump_dir := os.path.dirname(dump_path):
        os.makedirs(dump_dir, exist_ok=True)
    with open(dump_path, "ab") as fp:
        fp.write(direction)
        if os.environ.get("MCP_DUMP_FRAMES_RAW") == "1" or not isinstance(payload, dict):
            fp.write(raw.rstrip(b"\n") + b"\n")
        else:
            safe = redact_jsonrpc_for_dump(payload)
            fp.write((json.dumps(safe, ensure_ascii=False) + "\n").encode())


class StdioTransport:
    def __init__(self, protocol: McpProtocol, *, stdin: IO[bytes] | None = None, stdout: IO[bytes] | None = None) -> None:
        self.protocol = protocol
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._tasks: set[asyncio.Task[None]] = set()

    def write_message(self, payload: dict[str, Any] | list[Any]) -> None:
        """Write one JSON-RPC message (or batch) as a single line."""
        line = (json.dumps(payload, ensure_ascii=False) + "\n").encode()
        _dump_frame(b"--out--\n", payload, line)
        self._stdout.write(line)
        self._stdout.flush()

    async def read_message(self) -> tuple[bool, Any]:
        """Return (eof, message); message is None for blank lines."""
        line = await asyncio.to_thread(self._stdin.readline)
        if not line:
            return True, None
        line = line.strip()
        if not line:
            return False, None
        try:
            msg = json.loads(line.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("invalid frame: %s", exc)
            self.write_message(error_response(None, PARSE_ERROR, f"Parse error: {exc}"))
            return False, None
        if os.environ.get("MCP_TRACE") and isinstance(msg, dict):
            logger.info("recv %s", redact_jsonrpc_for_log(msg))
        _dump_frame(b"--in--\n", msg, line)
        return False, msg

    async def _process(self, message: Any) -> None:
        if isinstance(message, list):
            if not message:
                self.write_message(error_response(None, INVALID_REQUEST, "Invalid Request"))
                return
            replies = [r for r in [await self.protocol.handle(m) for m in message] if r is not None]
            if replies:
                self.write_message(replies)
            return
        reply = await self.protocol.handle(message)
        if reply is not None:
            self.write_message(reply)

    async def serve(self) -> None:
        logger.info("Chrome DevTools MCP Server connected (stdio)")
        while True:
            eof, message = await self.read_message()
            if eof:
                break
            if message is None:
                continue
            task = asyncio.create_task(self._process(message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        if self._tasks:
            await asyncio.gather(*self._tasks)
        logger.info("stdin closed; stdio transport stopped")
