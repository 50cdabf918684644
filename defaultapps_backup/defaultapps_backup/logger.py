"""
Logging setup for the default apps backup.

Console output carries the coloured status lines (blue progress, green
success, red failure); the file sink keeps a DEBUG-level history.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as _logger

_LOG_INITIALISED = False
LOG_DIR = Path(os.environ.get("LOCALAPPDATA") or (Path.home() / "AppData" / "Local")) / "DefaultAppsBackup"
DEFAULT_LOG_PATH = LOG_DIR / "backup.log"

_STATUS_COLOURS = {
    "progress": "blue",
    "success": "green",
    "failure": "red",
}
_LEVEL_COLOURS = {
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red",
}


def _console_format(record) -> str:
    colour = _STATUS_COLOURS.get(record["extra"].get("status")) or _LEVEL_COLOURS.get(record["level"].name)
    if colour is None:
        return "{message}\n{exception}"
    return f"<{colour}>{{message}}</{colour}>\n{{exception}}"


def configure(log_path: Optional[Path] = None, *, force: bool = False, console: bool = True) -> None:
    """
    Configure loguru for the backup.

    Runs once per process unless ``force`` is set, which lets the CLI
    point the file sink somewhere else after import-time configuration.
    """
    global _LOG_INITIALISED
    if _LOG_INITIALISED and not force:
        return
    target = log_path or DEFAULT_LOG_PATH

    _logger.remove()
    if console and sys.stdout is not None:
        _logger.add(sys.stdout, level="INFO", format=_console_format, colorize=True, enqueue=True)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        _logger.warning("File logging disabled; cannot create {}: {}", target.parent, exc)
    else:
        _logger.add(
            target,
            level="DEBUG",
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
    _LOG_INITIALISED = True


def get_logger():
    """Return the shared logger instance."""
    configure()
    return _logger


def progress(message: str, *args) -> None:
    get_logger().bind(status="progress").info(message, *args)


def success(message: str, *args) -> None:
    get_logger().bind(status="success").info(message, *args)


def failure(message: str, *args) -> None:
    get_logger().bind(status="failure").error(message, *args)
