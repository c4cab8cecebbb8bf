"""
Logging setup for the autosave plugin.

Every module logs through a child of the ``opencode_autosave`` logger. The
host process owns the root logger, so nothing here touches it; the CLI calls
:func:`setup_logging` once at startup.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_PACKAGE = "opencode_autosave"
_root_logger = logging.getLogger(_PACKAGE)

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# httpx logs every request at INFO, which floods the event stream output
_NOISY_LOGGERS = ("httpx", "httpcore")


def _to_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(
    level: str | int = "INFO",
    stream: TextIO | None = None,
    file: str | None = None,
) -> None:
    """
    Configure logging for the autosave plugin.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...) or int
        stream: Output stream (defaults to stderr)
        file: Optional path that receives a copy of every record

    Example:
        setup_logging("DEBUG")
        setup_logging("INFO", file="autosave.log")
    """
    level = _to_level(level)

    _root_logger.setLevel(level)
    _root_logger.handlers.clear()

    formatter = logging.Formatter(DEFAULT_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if file:
        handlers.append(logging.FileHandler(file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        _root_logger.addHandler(handler)

    noisy_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    """Child logger for a submodule, e.g. ``get_logger("storage")``."""
    if name.startswith(f"{_PACKAGE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_PACKAGE}.{name}")
