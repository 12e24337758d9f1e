"""Browser driver: obtain a CDP-controlled Chrome by connecting or launching.

`ensure_browser_connected()` / `ensure_browser_launched()` keep one cached
`Browser` and hand it back for as long as it is alive and was produced by an
equal request. A request for a different endpoint or launch configuration
replaces it.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from dataclasses import astuple, dataclass, field
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

from .cdp import CdpConnection, CdpError
from .launcher import BrowserLauncher, LaunchResult

logger = logging.getLogger("mcp.devtools.browser")

NAVIGATION_TIMEOUT = 10.0


class PageError(Exception):
    """Page-level failure (navigation, script exception, missing history)."""


@dataclass(frozen=True)
class ConnectRequest:
    """Attach to an already running browser."""

    browser_url: str | None = None
    ws_endpoint: str | None = None
    ws_headers: dict[str, str] | None = field(default=None, hash=False)
    devtools: bool = False

    def key(self) -> tuple[Any, ...]:
        headers = tuple(sorted((self.ws_headers or {}).items()))
        return ("connect", self.browser_url, self.ws_endpoint, headers, self.devtools)


@dataclass(frozen=True)
class LaunchRequest:
    """Launch a browser owned by this process."""

    headless: bool = False
    executable_path: str | None = None
    channel: str | None = None
    isolated: bool = False
    viewport: tuple[int, int] | None = None
    extra_args: tuple[str, ...] = ()
    accept_insecure_certs: bool = False
    log_file: str | None = None
    devtools: bool = False

    def key(self) -> tuple[Any, ...]:
        return ("launch", *astuple(self))


SessionRequest = ConnectRequest | LaunchRequest


class Page:
    """A page target, attached lazily through a flat CDP session."""

    def __init__(self, browser: Browser, target_id: str, *, url: str = "", title: str = "") -> None:
        self.browser = browser
        self.target_id = target_id
        self.url = url
        self.title = title
        self.session_id: str | None = None

    def __repr__(self) -> str:
        return f"Page(target_id={self.target_id!r}, url={self.url!r})"

    def update(self, info: dict[str, Any]) -> None:
        self.url = str(info.get("url") or self.url)
        self.title = str(info.get("title") or "")

    async def session(self) -> str:
        if self.session_id is None:
            result = await self.browser.connection.send(
                "Target.attachToTarget", {"targetId": self.target_id, "flatten": True}
            )
            self.session_id = str(result["sessionId"])
            self.browser.sessions[self.session_id] = self
        return self.session_id

    async def send(self, method: str, params: dict[str, Any] | None = None, *, timeout: float = 30.0) -> dict[str, Any]:
        session_id = await self.session()
        return await self.browser.connection.send(method, params, session_id=session_id, timeout=timeout)

    async def evaluate(self, expression: str, *, await_promise: bool = True) -> Any:
        result = await self.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": await_promise},
        )
        details = result.get("exceptionDetails")
        if details:
            raise PageError(_exception_text(details))
        return (result.get("result") or {}).get("value")

    async def call_function(self, declaration: str, arguments: list[dict[str, Any]]) -> Any:
        """Call a function declaration; `arguments` are CDP CallArguments (`objectId` or `value`)."""
        global_obj = await self.send("Runtime.evaluate", {"expression": "globalThis"})
        this_id = (global_obj.get("result") or {}).get("objectId")
        result = await self.send(
            "Runtime.callFunctionOn",
            {
                "functionDeclaration": declaration,
                "objectId": this_id,
                "arguments": arguments,
                "returnByValue": True,
                "awaitPromise": True,
            },
        )
        details = result.get("exceptionDetails")
        if details:
            raise PageError(_exception_text(details))
        return (result.get("result") or {}).get("value")

    async def refresh_info(self) -> None:
        with contextlib.suppress(CdpError):
            result = await self.browser.connection.send("Target.getTargetInfo", {"targetId": self.target_id})
            self.update(result.get("targetInfo") or {})

    async def goto(self, url: str, *, timeout: float = NAVIGATION_TIMEOUT) -> None:
        result = await self.send("Page.navigate", {"url": url}, timeout=timeout)
        if result.get("errorText"):
            raise PageError(f"Navigation to {url} failed: {result['errorText']}")
        await self.wait_for_load(timeout=timeout)

    async def reload(self, *, timeout: float = NAVIGATION_TIMEOUT) -> None:
        await self.send("Page.reload", {})
        await self.wait_for_load(timeout=timeout)

    async def go_history(self, delta: int, *, timeout: float = NAVIGATION_TIMEOUT) -> None:
        history = await self.send("Page.getNavigationHistory")
        entries = history.get("entries") or []
        index = int(history.get("currentIndex", 0)) + delta
        if not 0 <= index < len(entries):
            direction = "back" if delta < 0 else "forward"
            raise PageError(f"Unable to navigate {direction} in currently selected page.")
        await self.send("Page.navigateToHistoryEntry", {"entryId": entries[index]["id"]})
        await self.wait_for_load(timeout=timeout)

    async def wait_for_load(self, *, timeout: float = NAVIGATION_TIMEOUT) -> None:
        deadline = time.monotonic() + timeout
        # Give the navigation a moment to replace the old document.
        await asyncio.sleep(0.05)
        while time.monotonic() < deadline:
            try:
                if await self.evaluate("document.readyState", await_promise=False) == "complete":
                    await self.refresh_info()
                    return
            except (CdpError, PageError):
                # Execution context is swapped out mid-navigation.
                pass
            await asyncio.sleep(0.1)
        raise PageError(f"Navigation timeout of {timeout:g}s exceeded")

    async def screenshot(
        self,
        *,
        image_format: str = "png",
        quality: int | None = None,
        full_page: bool = False,
        clip: dict[str, float] | None = None,
    ) -> str:
        """Capture the page; returns base64-encoded image data."""
        params: dict[str, Any] = {"format": image_format}
        if quality is not None and image_format != "png":
            params["quality"] = quality
        if full_page and clip is None:
            metrics = await self.send("Page.getLayoutMetrics")
            size = metrics.get("cssContentSize") or metrics.get("contentSize") or {}
            clip = {"x": 0, "y": 0, "width": size.get("width", 0), "height": size.get("height", 0)}
            params["captureBeyondViewport"] = True
        if clip is not None:
            params["clip"] = {**clip, "scale": 1}
        result = await self.send("Page.captureScreenshot", params)
        return str(result.get("data") or "")

    async def set_viewport(self, width: int, height: int) -> None:
        await self.send(
            "Emulation.setDeviceMetricsOverride",
            {"width": int(width), "height": int(height), "deviceScaleFactor": 0, "mobile": False},
        )

    async def bring_to_front(self) -> None:
        await self.send("Page.bringToFront")

    async def close(self) -> None:
        await self.browser.connection.send("Target.closeTarget", {"targetId": self.target_id})
        self.browser.forget(self)


class Browser:
    """Handle on one browser (one CDP connection)."""

    def __init__(
        self,
        connection: CdpConnection,
        *,
        key: tuple[Any, ...],
        launched: LaunchResult | None = None,
        include_devtools: bool = False,
    ) -> None:
        self.connection = connection
        self.key = key
        self.launched = launched
        self.include_devtools = include_devtools
        self.sessions: dict[str, Page] = {}
        self._pages: dict[str, Page] = {}

    @property
    def connected(self) -> bool:
        if self.connection.closed:
            return False
        if self.launched is not None and self.launched.process.returncode is not None:
            return False
        return True

    def page_for_session(self, session_id: str | None) -> Page | None:
        if not session_id:
            return None
        return self.sessions.get(session_id)

    def forget(self, page: Page) -> None:
        self._pages.pop(page.target_id, None)
        if page.session_id:
            self.sessions.pop(page.session_id, None)

    async def pages(self) -> list[Page]:
        result = await self.connection.send("Target.getTargets")
        pages: list[Page] = []
        live: set[str] = set()
        for info in result.get("targetInfos") or []:
            if info.get("type") != "page":
                continue
            url = str(info.get("url") or "")
            if url.startswith("devtools://") and not self.include_devtools:
                continue
            target_id = str(info["targetId"])
            page = self._pages.get(target_id)
            if page is None:
                page = Page(self, target_id)
                self._pages[target_id] = page
            page.update(info)
            pages.append(page)
            live.add(target_id)
        for stale in [p for tid, p in self._pages.items() if tid not in live]:
            self.forget(stale)
        return pages

    async def new_page(self, url: str = "about:blank") -> Page:
        result = await self.connection.send("Target.createTarget", {"url": "about:blank"})
        page = Page(self, str(result["targetId"]), url="about:blank")
        self._pages[page.target_id] = page
        if url and url != "about:blank":
            await page.goto(url)
        return page

    async def disconnect(self) -> None:
        await self.connection.close()

    async def close(self) -> None:
        """Close the browser if we launched it, otherwise just disconnect."""
        if self.launched is not None and self.connected:
            with contextlib.suppress(CdpError):
                await self.connection.send("Browser.close", timeout=2.0)
        await self.connection.close()
        if self.launched is not None:
            await self.launched.stop()


def _exception_text(details: dict[str, Any]) -> str:
    exception = details.get("exception") or {}
    return str(exception.get("description") or details.get("text") or "Script threw an exception")


def _fetch_version(browser_url: str, timeout: float) -> dict[str, Any]:
    endpoint = f"{browser_url.rstrip('/')}/json/version"
    req = Request(endpoint, headers={"User-Agent": "chrome-devtools-mcp"})
    with urlopen(req, timeout=timeout) as resp:
        return json.loads(resp.read().decode("utf-8"))


async def resolve_ws_endpoint(browser_url: str, *, timeout: float = 5.0) -> str:
    """Look up the browser WebSocket URL from `<browser_url>/json/version`."""
    try:
        info = await asyncio.to_thread(_fetch_version, browser_url, timeout)
    except (OSError, TimeoutError, URLError, ValueError) as exc:
        raise CdpError(f"Could not connect to Chrome at {browser_url}: {exc}") from exc
    ws_url = info.get("webSocketDebuggerUrl") if isinstance(info, dict) else None
    if not isinstance(ws_url, str) or not ws_url:
        raise CdpError(f"{browser_url}/json/version did not report webSocketDebuggerUrl")
    return ws_url


_browser: Browser | None = None


def current_browser() -> Browser | None:
    return _browser


async def _replace(previous: Browser | None) -> None:
    if previous is None:
        return
    logger.info("replacing browser %s", previous.key[0])
    with contextlib.suppress(Exception):
        await previous.close()


async def ensure_browser_connected(request: ConnectRequest) -> Browser:
    global _browser
    key = request.key()
    if _browser is not None and _browser.connected and _browser.key == key:
        return _browser

    ws_url = request.ws_endpoint or await resolve_ws_endpoint(request.browser_url or "")
    connection = await CdpConnection.connect(ws_url, headers=request.ws_headers)
    previous, _browser = _browser, Browser(connection, key=key, include_devtools=request.devtools)
    await _replace(previous)
    logger.info("connected to browser %s", ws_url)
    return _browser


async def ensure_browser_launched(request: LaunchRequest) -> Browser:
    global _browser
    key = request.key()
    if _browser is not None and _browser.connected and _browser.key == key:
        return _browser

    # Launching twice on the same profile would fail on the profile lock.
    previous, _browser = _browser, None
    await _replace(previous)

    launched = await BrowserLauncher(request).launch()
    try:
        connection = await CdpConnection.connect(launched.ws_endpoint)
    except CdpError:
        await launched.stop()
        raise
    _browser = Browser(connection, key=key, launched=launched, include_devtools=request.devtools)
    logger.info("launched browser %s", launched.ws_endpoint)
    return _browser


async def shutdown_browser() -> None:
    global _browser
    previous, _browser = _browser, None
    if previous is not None:
        await previous.close()
