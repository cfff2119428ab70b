"""
Logging utilities for typst-embed.

Build output is prefixed the way a build script reports progress
(``typst-embed: Downloading: @preview/cetz:0.3.2``). Every module logs
through a child of the ``typst_embed`` logger, so one call configures the
scanner, resolver, downloader and compression cache together.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

ROOT_LOGGER_NAME = "typst_embed"
CONSOLE_FORMAT = "typst-embed: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_root_logger = logging.getLogger(ROOT_LOGGER_NAME)


def _attach(handler: logging.Handler, fmt: str, level: int) -> None:
    handler.setFormatter(logging.Formatter(fmt))
    handler.setLevel(level)
    _root_logger.addHandler(handler)


def setup_logging(
    level: str | int = "INFO",
    format: str | None = None,
    stream: TextIO | None = None,
    file: str | None = None,
) -> None:
    """
    Configure logging for a bake.

    Replaces any handlers installed by an earlier call.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...) or int
        format: Console format; defaults to the ``typst-embed:`` prefix
        stream: Console stream (defaults to stderr)
        file: Optional log file, written with timestamps and logger names

    Example:
        from typst_embed.logging import setup_logging

        setup_logging("DEBUG")
        setup_logging("WARNING", file="bake.log")
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    _root_logger.setLevel(level)
    _root_logger.handlers.clear()

    _attach(logging.StreamHandler(stream or sys.stderr), format or CONSOLE_FORMAT, level)
    if file:
        _attach(logging.FileHandler(file), FILE_FORMAT, level)


def get_logger(name: str) -> logging.Logger:
    """Child logger for a submodule, e.g. ``get_logger("resolver")``."""
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
