"""Logging setup.

stdout carries protocol frames in stdio mode, so everything goes to stderr
(plus an optional debug file).
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

DISCLAIMER = (
    "chrome-devtools-mcp exposes content of the browser instance to the MCP clients allowing them to inspect,\n"
    "debug, and modify any data in the browser or DevTools.\n"
    "Avoid sharing sensitive or personal information that you do not want to share with MCP clients."
)


def configure_logging(log_file: str | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, stream=sys.stderr)
    if not log_file:
        return
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    logging.getLogger("mcp.devtools").setLevel(logging.DEBUG)
    logging.getLogger("mcp.devtools").debug("debug log file: %s", log_file)


def log_disclaimers() -> None:
    print(DISCLAIMER, file=sys.stderr)
