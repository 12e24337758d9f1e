"""
MCP server exposing Chrome to coding agents via the DevTools protocol.

This module provides the entry point: it wires configuration, the tool
registry, the dispatcher and one transport (stdio by default, HTTP with
`--http-server`).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Sequence

from .browser import shutdown_browser
from .config import DevtoolsConfig, parse_arguments
from .log import configure_logging, log_disclaimers
from .server.dispatch import ToolDispatcher
from .server.protocol import McpProtocol
from .server.registry import create_default_registry
from .session_manager import SessionManager

logger = logging.getLogger("mcp.devtools")

__all__ = ["build_protocol", "serve", "main"]


def build_protocol(config: DevtoolsConfig) -> McpProtocol:
    registry = create_default_registry()
    dispatcher = ToolDispatcher(registry, SessionManager(), config.session_request())
    return McpProtocol(dispatcher)


async def serve(config: DevtoolsConfig) -> None:
    protocol = build_protocol(config)
    try:
        if config.http_server:
            from .http_app import create_app, run_http

            logger.info("Starting in HTTP mode")
            log_disclaimers()
            await run_http(create_app(protocol), host=config.host, port=config.port)
        else:
            from .stdio import StdioTransport

            logger.info("Starting in stdio mode")
            log_disclaimers()
            await StdioTransport(protocol).serve()
    finally:
        await shutdown_browser()


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for MCP server."""
    config = parse_arguments(argv)
    configure_logging(config.log_file)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(config))


if __name__ == "__main__":
    main()
