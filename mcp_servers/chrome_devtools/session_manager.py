"""Owner of the single shared session (browser context).

Only the dispatcher calls `resolve()`, and only while holding the tool gate,
so resolution never races with itself or with a running handler.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .browser import (
    Browser,
    ConnectRequest,
    LaunchRequest,
    SessionRequest,
    ensure_browser_connected,
    ensure_browser_launched,
)
from .context import McpContext

logger = logging.getLogger("mcp.devtools.session")

ConnectFunc = Callable[[ConnectRequest], Awaitable[Browser]]
LaunchFunc = Callable[[LaunchRequest], Awaitable[Browser]]
ContextFactory = Callable[[Browser], Awaitable[McpContext]]


class SessionManager:
    def __init__(
        self,
        *,
        connect: ConnectFunc | None = None,
        launch: LaunchFunc | None = None,
        context_factory: ContextFactory | None = None,
    ) -> None:
        self._connect = connect or ensure_browser_connected
        self._launch = launch or ensure_browser_launched
        self._context_factory = context_factory or McpContext.from_browser
        self._context: McpContext | None = None

    @property
    def current(self) -> McpContext | None:
        return self._context

    async def resolve(self, request: SessionRequest) -> McpContext:
        """Return the context for `request`, reusing it while the browser is unchanged."""
        if isinstance(request, ConnectRequest):
            browser = await self._connect(request)
        else:
            browser = await self._launch(request)

        context = self._context
        if context is not None and context.browser is browser:
            return context

        # Commit only a fully built context; a failure here leaves the cache as it was.
        context = await self._context_factory(browser)
        if self._context is not None:
            logger.info("browser changed, replacing session context")
        self._context = context
        return context
