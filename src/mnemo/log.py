"""Logging setup for the CLI and web server."""

import logging

from rich.logging import RichHandler


def configure_logging(level: str | int = logging.WARNING) -> None:
    """Route the ``mnemo`` loggers through a rich handler."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root = logging.getLogger("mnemo")
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
