"""Logging setup for Parut.

Every module logs through ``get_logger(name)``, which hangs off the ``parut``
logger. ``setup_logging`` attaches a size-rotated file handler and a stderr
handler for warnings and errors.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "parut"
LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_handlers: list[logging.Handler] = []


class _LevelFormatter(logging.Formatter):
    """Formatter that prints WARNING as WARN."""

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        if record.levelno == logging.WARNING:
            record.levelname = "WARN"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def log_dir() -> Path:
    base = os.environ.get("XDG_DATA_HOME")
    root = Path(base) if base else Path.home() / ".local" / "share"
    return root / "parut"


def log_path(directory: Optional[Path] = None) -> Path:
    return (directory or log_dir()) / "parut.log"


def level_from_name(name: Optional[str]) -> int:
    return LEVELS.get((name or "").lower(), logging.INFO)


def setup_logging(
    level: Optional[str] = None,
    max_size_mb: Optional[int] = None,
    directory: Optional[Path] = None,
) -> logging.Logger:
    """Configure the ``parut`` logger. Calling it again replaces the handlers."""

    root = logging.getLogger(ROOT_LOGGER)
    for handler in _handlers:
        root.removeHandler(handler)
        handler.close()
    _handlers.clear()

    root.setLevel(level_from_name(level))
    root.propagate = False
    formatter = _LevelFormatter(LOG_FORMAT, DATE_FORMAT)

    path = log_path(directory)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        max_bytes = max(int(max_size_mb or 10), 1) * 1024 * 1024
        file_handler = RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=1, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        _handlers.append(file_handler)
    except OSError as exc:
        print(f"Failed to create log directory: {exc}", file=sys.stderr)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.WARNING)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)
    _handlers.append(stream_handler)

    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
