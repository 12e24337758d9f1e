from __future__ import annotations

import argparse
import json
import os
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .browser import ConnectRequest, LaunchRequest, SessionRequest
from .launcher import CHANNELS
from .server.contract import __version__

DEFAULT_HTTP_HOST = "127.0.0.1"
DEFAULT_HTTP_PORT = 3000

_VIEWPORT_RE = re.compile(r"^(\d+)x(\d+)$")
_TRUE = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    """Invalid startup configuration."""


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def parse_viewport(raw: str) -> tuple[int, int]:
    """Parse `WxH` (e.g. `1280x720`)."""
    m = _VIEWPORT_RE.match((raw or "").strip())
    if not m:
        raise ConfigError(f"Invalid viewport {raw!r}: expected WIDTHxHEIGHT, e.g. 1280x720")
    width, height = int(m.group(1)), int(m.group(2))
    if width <= 0 or height <= 0:
        raise ConfigError(f"Invalid viewport {raw!r}: width and height must be positive")
    return width, height


def parse_ws_headers(raw: str) -> dict[str, str]:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON for --ws-headers: {exc}") from exc
    if not isinstance(value, dict):
        raise ConfigError("--ws-headers must be a JSON object")
    return {str(k): str(v) for k, v in value.items()}


def _env_bool(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE


def _env_str(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


@dataclass
class DevtoolsConfig:
    browser_url: str | None = None
    ws_endpoint: str | None = None
    ws_headers: dict[str, str] | None = None
    headless: bool = False
    executable_path: str | None = None
    channel: str | None = None
    isolated: bool = False
    viewport: tuple[int, int] | None = None
    chrome_args: list[str] = field(default_factory=list)
    proxy_server: str | None = None
    accept_insecure_certs: bool = False
    experimental_devtools: bool = False
    log_file: str | None = None
    http_server: bool = False
    host: str = DEFAULT_HTTP_HOST
    port: int = DEFAULT_HTTP_PORT

    @classmethod
    def from_env(cls) -> DevtoolsConfig:
        headers_raw = _env_str("MCP_WS_HEADERS")
        viewport_raw = _env_str("MCP_VIEWPORT")
        binary = _env_str("MCP_BROWSER_BINARY")
        log_file = _env_str("MCP_LOG_FILE")
        flags_raw = os.environ.get("MCP_BROWSER_FLAGS", "")
        port_raw = _env_str("MCP_HTTP_PORT")
        try:
            port = int(port_raw) if port_raw else DEFAULT_HTTP_PORT
        except ValueError as exc:
            raise ConfigError(f"Invalid MCP_HTTP_PORT {port_raw!r}") from exc
        return cls(
            browser_url=_env_str("MCP_BROWSER_URL"),
            ws_endpoint=_env_str("MCP_WS_ENDPOINT"),
            ws_headers=parse_ws_headers(headers_raw) if headers_raw else None,
            headless=_env_bool("MCP_HEADLESS"),
            executable_path=expand_path(binary) if binary else None,
            channel=_env_str("MCP_BROWSER_CHANNEL"),
            isolated=_env_bool("MCP_ISOLATED"),
            viewport=parse_viewport(viewport_raw) if viewport_raw else None,
            chrome_args=[flag.strip() for flag in flags_raw.split(",") if flag.strip()],
            proxy_server=_env_str("MCP_PROXY_SERVER"),
            accept_insecure_certs=_env_bool("MCP_ACCEPT_INSECURE_CERTS"),
            experimental_devtools=_env_bool("MCP_EXPERIMENTAL_DEVTOOLS"),
            log_file=expand_path(log_file) if log_file else None,
            http_server=_env_bool("MCP_HTTP_SERVER"),
            host=_env_str("MCP_HTTP_HOST") or DEFAULT_HTTP_HOST,
            port=port,
        )

    @property
    def remote(self) -> bool:
        return bool(self.browser_url or self.ws_endpoint)

    def validate(self) -> None:
        if self.browser_url and self.ws_endpoint:
            raise ConfigError("--browser-url and --ws-endpoint are mutually exclusive")
        if self.ws_headers is not None and not self.ws_endpoint:
            raise ConfigError("--ws-headers requires --ws-endpoint")
        if self.remote:
            for flag, value in (
                ("--executable-path", self.executable_path),
                ("--channel", self.channel),
                ("--isolated", self.isolated),
            ):
                if value:
                    raise ConfigError(f"{flag} cannot be combined with --browser-url/--ws-endpoint")
        if self.channel and self.channel not in CHANNELS:
            raise ConfigError(f"Unknown channel {self.channel!r}; expected one of {', '.join(CHANNELS)}")
        if self.executable_path and self.channel:
            raise ConfigError("--executable-path and --channel are mutually exclusive")
        if not 0 < self.port < 65536:
            raise ConfigError(f"Invalid port {self.port}")

    def session_request(self) -> SessionRequest:
        """Build the browser session request the dispatcher resolves on every call."""
        if self.remote:
            return ConnectRequest(
                browser_url=self.browser_url,
                ws_endpoint=self.ws_endpoint,
                ws_headers=dict(self.ws_headers) if self.ws_headers else None,
                devtools=self.experimental_devtools,
            )
        extra_args = list(self.chrome_args)
        if self.proxy_server:
            extra_args.append(f"--proxy-server={self.proxy_server}")
        return LaunchRequest(
            headless=self.headless,
            executable_path=self.executable_path,
            channel=self.channel or ("stable" if not self.executable_path else None),
            isolated=self.isolated,
            viewport=self.viewport,
            extra_args=tuple(extra_args),
            accept_insecure_certs=self.accept_insecure_certs,
            log_file=self.log_file,
            devtools=self.experimental_devtools,
        )


def build_parser(defaults: DevtoolsConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chrome-devtools-mcp",
        description="MCP server exposing a Chrome browser to coding agents via the DevTools protocol.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    remote = parser.add_argument_group("connect to a running browser")
    remote.add_argument(
        "-u",
        "--browser-url",
        default=defaults.browser_url,
        help="HTTP debugging endpoint of a running Chrome, e.g. http://127.0.0.1:9222",
    )
    remote.add_argument(
        "-w",
        "--ws-endpoint",
        default=defaults.ws_endpoint,
        help="WebSocket endpoint of a running Chrome, e.g. ws://127.0.0.1:9222/devtools/browser/<id>",
    )
    remote.add_argument(
        "--ws-headers",
        default=None,
        help='JSON object of headers sent with the WebSocket handshake (requires --ws-endpoint), e.g. \'{"Authorization":"Bearer x"}\'',
    )

    launch = parser.add_argument_group("launch a browser")
    launch.add_argument("--headless", action="store_true", default=defaults.headless, help="Run without a UI")
    launch.add_argument(
        "-e", "--executable-path", default=defaults.executable_path, help="Path to a custom Chrome binary"
    )
    launch.add_argument("--channel", choices=CHANNELS, default=defaults.channel, help="Chrome channel to launch")
    launch.add_argument(
        "--isolated",
        action="store_true",
        default=defaults.isolated,
        help="Use a temporary profile that is removed when the browser closes",
    )
    launch.add_argument("--viewport", default=None, help="Initial viewport size, e.g. 1280x720")
    launch.add_argument(
        "--chrome-arg",
        action="append",
        dest="chrome_args",
        default=None,
        help="Additional Chrome argument (repeatable)",
    )
    launch.add_argument("--proxy-server", default=defaults.proxy_server, help="Proxy server for Chrome")
    launch.add_argument(
        "--accept-insecure-certs",
        action="store_true",
        default=defaults.accept_insecure_certs,
        help="Ignore certificate errors (self-signed or expired certificates)",
    )
    launch.add_argument(
        "--experimental-devtools",
        action="store_true",
        default=defaults.experimental_devtools,
        help="Expose DevTools windows as pages",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--log-file", default=defaults.log_file, help="Write debug logs to this file")
    server.add_argument(
        "--http-server",
        action="store_true",
        default=defaults.http_server,
        help="Serve MCP over streamable HTTP instead of stdio",
    )
    server.add_argument("--host", default=defaults.host, help="HTTP bind address")
    server.add_argument("--port", type=int, default=defaults.port, help="HTTP port")
    return parser


def parse_arguments(argv: Sequence[str] | None = None) -> DevtoolsConfig:
    """Parse command-line flags on top of `MCP_*` environment defaults.

    Invalid combinations exit through `parser.error` (status 2).
    """
    try:
        defaults = DevtoolsConfig.from_env()
    except ConfigError as exc:
        build_parser(DevtoolsConfig()).error(str(exc))
    parser = build_parser(defaults)
    args = parser.parse_args(argv)
    try:
        config = DevtoolsConfig(
            browser_url=args.browser_url,
            ws_endpoint=args.ws_endpoint,
            ws_headers=parse_ws_headers(args.ws_headers) if args.ws_headers is not None else defaults.ws_headers,
            headless=args.headless,
            executable_path=expand_path(args.executable_path) if args.executable_path else None,
            channel=args.channel,
            isolated=args.isolated,
            viewport=parse_viewport(args.viewport) if args.viewport is not None else defaults.viewport,
            chrome_args=args.chrome_args if args.chrome_args is not None else list(defaults.chrome_args),
            proxy_server=args.proxy_server,
            accept_insecure_certs=args.accept_insecure_certs,
            experimental_devtools=args.experimental_devtools,
            log_file=expand_path(args.log_file) if args.log_file else None,
            http_server=args.http_server,
            host=args.host,
            port=args.port,
        )
        config.validate()
    except ConfigError as exc:
        parser.error(str(exc))
    return config
