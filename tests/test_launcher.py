from __future__ import annotations

import pytest


def test_build_launch_command_includes_requested_flags(monkeypatch) -> None:  # noqa: ANN001
    from mcp_servers.chrome_devtools.browser import LaunchRequest
    from mcp_servers.chrome_devtools.launcher import BrowserLauncher

    monkeypatch.delenv("MCP_BROWSER_BINARY", raising=False)
    request = LaunchRequest(
        headless=True,
        executable_path="/opt/chrome/chrome",
        viewport=(1280, 720),
        extra_args=("--mute-audio",),
        accept_insecure_certs=True,
        devtools=True,
    )
    cmd = BrowserLauncher(request).build_launch_command("/tmp/profile")

    assert cmd[0] == "/opt/chrome/chrome"
    assert cmd[-1] == "about:blank"
    assert "--remote-debugging-port=0" in cmd
    assert "--user-data-dir=/tmp/profile" in cmd
    assert "--headless=new" in cmd
    assert "--window-size=1280,720" in cmd
    assert "--ignore-certificate-errors" in cmd
    assert "--auto-open-devtools-for-tabs" in cmd
    assert cmd.index("--mute-audio") < len(cmd) - 1


def test_build_launch_command_minimal() -> None:
    from mcp_servers.chrome_devtools.browser import LaunchRequest
    from mcp_servers.chrome_devtools.launcher import BrowserLauncher

    cmd = BrowserLauncher(LaunchRequest(executable_path="/bin/chrome")).build_launch_command("/p")
    assert not any(flag.startswith("--headless") for flag in cmd)
    assert not any(flag.startswith("--window-size") for flag in cmd)


def test_binary_from_env(monkeypatch) -> None:  # noqa: ANN001
    from mcp_servers.chrome_devtools.launcher import detect_binary

    monkeypatch.setenv("MCP_BROWSER_BINARY", "~/bin/chrome")
    assert detect_binary("beta").endswith("/bin/chrome")
    assert "~" not in detect_binary("beta")


def test_default_user_data_dir_per_channel() -> None:
    from mcp_servers.chrome_devtools.launcher import default_user_data_dir

    assert default_user_data_dir(None).name == "chrome-profile"
    assert default_user_data_dir("stable").name == "chrome-profile"
    assert default_user_data_dir("canary").name == "chrome-profile-canary"
    assert default_user_data_dir("canary").parent.name == "chrome-devtools-mcp"


def test_parse_active_port() -> None:
    from mcp_servers.chrome_devtools.launcher import parse_active_port

    assert parse_active_port("9333\n/devtools/browser/abc\n") == (9333, "/devtools/browser/abc")
    with pytest.raises(ValueError):
        parse_active_port("9333\n")
    with pytest.raises(ValueError):
        parse_active_port("0\n/devtools/browser/abc")


def test_isolated_profile_is_temporary() -> None:
    import os
    import shutil

    from mcp_servers.chrome_devtools.browser import LaunchRequest
    from mcp_servers.chrome_devtools.launcher import BrowserLauncher

    path, temporary = BrowserLauncher(LaunchRequest(isolated=True))._prepare_user_data_dir()  # noqa: SLF001
    try:
        assert temporary
        assert os.path.isdir(path)
    finally:
        shutil.rmtree(path, ignore_errors=True)


def test_launch_failure_raises_launch_error(tmp_path) -> None:  # noqa: ANN001
    import asyncio

    from mcp_servers.chrome_devtools.browser import LaunchRequest
    from mcp_servers.chrome_devtools.launcher import BrowserLauncher, LaunchError

    missing = tmp_path / "no-such-chrome"
    launcher = BrowserLauncher(LaunchRequest(executable_path=str(missing), isolated=True))
    with pytest.raises(LaunchError):
        asyncio.run(launcher.launch(timeout=1))
