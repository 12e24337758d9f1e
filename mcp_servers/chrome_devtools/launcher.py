from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .browser import LaunchRequest

logger = logging.getLogger("mcp.devtools.launcher")

CHANNELS = ("stable", "beta", "canary", "dev")

CHANNEL_BINARY_CANDIDATES: dict[str, list[str]] = {
    "stable": [
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/opt/google/chrome/chrome",
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
        "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
        # Chromium as a fallback for stable only.
        "/usr/bin/chromium",
        "/usr/bin/chromium-browser",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
    ],
    "beta": [
        "/usr/bin/google-chrome-beta",
        "/opt/google/chrome-beta/chrome",
        "/Applications/Google Chrome Beta.app/Contents/MacOS/Google Chrome Beta",
        "C:\\Program Files\\Google\\Chrome Beta\\Application\\chrome.exe",
    ],
    "canary": [
        "/usr/bin/google-chrome-canary",
        "/opt/google/chrome-canary/chrome",
        "/Applications/Google Chrome Canary.app/Contents/MacOS/Google Chrome Canary",
    ],
    "dev": [
        "/usr/bin/google-chrome-unstable",
        "/opt/google/chrome-unstable/chrome",
        "/Applications/Google Chrome Dev.app/Contents/MacOS/Google Chrome Dev",
        "C:\\Program Files\\Google\\Chrome Dev\\Application\\chrome.exe",
    ],
}

ACTIVE_PORT_FILE = "DevToolsActivePort"


class LaunchError(Exception):
    pass


def detect_binary(channel: str | None = None) -> str:
    env_path = os.environ.get("MCP_BROWSER_BINARY")
    if env_path:
        return str(Path(env_path).expanduser())
    for candidate in CHANNEL_BINARY_CANDIDATES.get(channel or "stable", []):
        path = Path(candidate)
        if path.exists() and os.access(str(path), os.X_OK):
            return str(path)
    # Last resort: rely on PATH lookup
    return shutil.which("google-chrome") or "google-chrome"


def default_user_data_dir(channel: str | None = None) -> Path:
    suffix = "" if channel in (None, "", "stable") else f"-{channel}"
    return Path.home() / ".cache" / "chrome-devtools-mcp" / f"chrome-profile{suffix}"


def parse_active_port(text: str) -> tuple[int, str]:
    """Parse `DevToolsActivePort` (line 1: port, line 2: browser ws path)."""
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    if len(lines) < 2:
        raise ValueError("DevToolsActivePort is incomplete")
    port = int(lines[0])
    if not 0 < port < 65536:
        raise ValueError(f"Invalid DevTools port: {port}")
    return port, lines[1]


@dataclass
class LaunchResult:
    command: list[str]
    process: asyncio.subprocess.Process
    ws_endpoint: str
    user_data_dir: str
    temporary_profile: bool = False
    log_path: str | None = None

    async def stop(self, *, timeout: float = 2.0) -> None:
        """Best-effort stop of the launcher-owned Chrome process."""
        proc = self.process
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.terminate()
            try:
                await asyncio.wait_for(proc.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                # Escalate to kill.
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                with contextlib.suppress(Exception):
                    await proc.wait()
        if self.temporary_profile:
            shutil.rmtree(self.user_data_dir, ignore_errors=True)


class BrowserLauncher:
    def __init__(self, request: LaunchRequest) -> None:
        self.request = request

    def binary_path(self) -> str:
        if self.request.executable_path:
            return str(Path(self.request.executable_path).expanduser())
        return detect_binary(self.request.channel)

    def _build_common_flags(self, user_data_dir: str) -> list[str]:
        flags = [
            "--remote-debugging-port=0",
            f"--user-data-dir={user_data_dir}",
            "--no-first-run",
            "--no-default-browser-check",
            "--disable-fre",
            "--hide-crash-restore-bubble",
        ]
        if self.request.headless:
            flags.append("--headless=new")
        if self.request.viewport:
            width, height = self.request.viewport
            flags.append(f"--window-size={width},{height}")
        if self.request.accept_insecure_certs:
            flags.append("--ignore-certificate-errors")
        if self.request.devtools:
            flags.append("--auto-open-devtools-for-tabs")
        return flags

    def build_launch_command(self, user_data_dir: str) -> list[str]:
        flags = self._build_common_flags(user_data_dir) + list(self.request.extra_args)
        return [self.binary_path(), *flags, "about:blank"]

    def _prepare_user_data_dir(self) -> tuple[str, bool]:
        if self.request.isolated:
            return tempfile.mkdtemp(prefix="chrome-devtools-mcp-"), True
        path = default_user_data_dir(self.request.channel)
        path.mkdir(parents=True, exist_ok=True)
        return str(path), False

    async def launch(self, timeout: float = 15.0) -> LaunchResult:
        user_data_dir, temporary = self._prepare_user_data_dir()
        port_file = Path(user_data_dir) / ACTIVE_PORT_FILE
        # A stale file from a previous run would point at a dead port.
        with contextlib.suppress(FileNotFoundError):
            port_file.unlink()

        cmd = self.build_launch_command(user_data_dir)
        log_fp = None
        if self.request.log_file:
            log_fp = open(self.request.log_file, "ab")  # noqa: SIM115
        logger.info("launching browser: %s", cmd[0])
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=log_fp or asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            if temporary:
                shutil.rmtree(user_data_dir, ignore_errors=True)
            raise LaunchError(f"Failed to launch the browser process ({cmd[0]}): {exc}") from exc
        finally:
            if log_fp is not None:
                log_fp.close()

        result = LaunchResult(
            command=cmd,
            process=proc,
            ws_endpoint="",
            user_data_dir=user_data_dir,
            temporary_profile=temporary,
            log_path=self.request.log_file,
        )

        deadline = time.monotonic() + max(0.5, float(timeout))
        while time.monotonic() < deadline:
            if proc.returncode is not None:
                await result.stop()
                raise LaunchError(
                    f"The browser exited early (code {proc.returncode}). "
                    f"If it is already running for {user_data_dir}, use --isolated to run multiple browser instances."
                )
            try:
                port, path = parse_active_port(port_file.read_text(encoding="utf-8"))
            except (FileNotFoundError, ValueError):
                await asyncio.sleep(0.05)
                continue
            result.ws_endpoint = f"ws://127.0.0.1:{port}{path}"
            return result

        await result.stop()
        raise LaunchError(f"Timed out after {timeout:g}s waiting for the browser DevTools endpoint")
