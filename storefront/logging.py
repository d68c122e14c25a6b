"""
Logging for the storefront state layer.

The package runs inside a UI process that owns logging, so importing it only
attaches a NullHandler to the ``storefront`` logger. Console output is opt-in
through configure_logging(); create_context() calls it when
STOREFRONT_LOG_LEVEL (or LOG_LEVEL) is set.

Usage:
    from storefront.logging import get_logger, loggable
    logger = get_logger(__name__)

    logger.warning(f"Corrupted value in storage key {loggable(key)}")
"""

import logging
import os
import sys
from functools import cache
from typing import IO, Optional, Union

PACKAGE_LOGGER = "storefront"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FORMAT_COMPACT = "[%(levelname)s] %(name)s: %(message)s"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Storage keys, section names and product ids come from the UI or the API.
# Control characters are rendered visibly so a value cannot forge log lines.
_CONTROL_ESCAPES = {code: f"\\x{code:02x}" for code in (*range(0x20), 0x7F)}
_CONTROL_ESCAPES.update({ord("\n"): "\\n", ord("\r"): "\\r", ord("\t"): "\\t"})

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


class _ConsoleHandler(logging.StreamHandler):
    """Marker type so configure_logging installs at most one console handler."""


def resolve_level(level: Union[int, str, None]) -> int:
    """
    Turn a level name or number into a logging level.

    Raises:
        ValueError: If the name is not a standard level
    """
    if isinstance(level, int):
        return level
    name = (level or "INFO").strip().upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    return getattr(logging, name)


def configure_logging(
    level: Union[int, str, None] = None,
    stream: Optional[IO[str]] = None,
    compact: Optional[bool] = None,
) -> logging.Logger:
    """
    Print storefront logs to a stream (stdout by default).

    Repeated calls only adjust the level of the handler installed first.

    Args:
        level: Level name or number (default INFO)
        stream: Output stream for the console handler
        compact: Drop timestamps; defaults to True when STOREFRONT_ENV=production

    Returns:
        The package logger
    """
    level_no = resolve_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level_no)

    handler = next((h for h in logger.handlers if isinstance(h, _ConsoleHandler)), None)
    if handler is None:
        if compact is None:
            compact = os.environ.get("STOREFRONT_ENV") == "production"
        handler = _ConsoleHandler(stream or sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT_COMPACT if compact else LOG_FORMAT))
        logger.addHandler(handler)
    handler.setLevel(level_no)

    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(max(level_no, logging.WARNING))
    return logger


@cache
def get_logger(name: str) -> logging.Logger:
    """Logger inside the storefront hierarchy; other names are nested under it."""
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def loggable(value: object, max_length: int = 32) -> str:
    """
    Render an untrusted value for a log line.

    Control characters are escaped and long values truncated. Empty values
    render as "-".
    """
    if value is None or value == "":
        return "-"
    text = str(value).translate(_CONTROL_ESCAPES)
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


__all__ = [
    "LOG_LEVELS",
    "PACKAGE_LOGGER",
    "configure_logging",
    "get_logger",
    "loggable",
    "resolve_level",
]
