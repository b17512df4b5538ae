"""Logging configuration for the lgpm CLI.

Library code only calls ``logging.getLogger(__name__)``; handlers are
installed here, once, by the entry point.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVELS = ("debug", "info", "warning", "error")


def setup_logging(level: str | int = "warning", console: Console | None = None) -> None:
    """Send log records to stderr through rich.

    Args:
        level: Level name ("debug", "info", ...) or numeric level
        console: Console to render on (default: a stderr console)
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level}")
        level = numeric

    handler = RichHandler(
        console=console or Console(stderr=True),
        level=level,
        rich_tracebacks=True,
        show_path=level <= logging.DEBUG,
    )
    logging.basicConfig(
        level=level,
        handlers=[handler],
        format="%(name)s: %(message)s",
        datefmt="[%X]",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
