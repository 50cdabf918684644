"""
Creation of per-category backup directories under a backup root.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from defaultapps_backup.defaultapps_backup import logger as app_logger

_LOGGER = app_logger.get_logger()


def initialize_backup_directory(path: str, backup_type: str, backup_root_path: str | Path) -> Optional[Path]:
    """
    Create (or confirm) ``backup_root_path / path`` for ``backup_type``.

    Returns the resolved directory, or None when it cannot be created or
    is not writable.
    """
    target = Path(backup_root_path) / path
    try:
        target.mkdir(parents=True, exist_ok=True)
        resolved = target.resolve()
    except OSError as exc:
        _LOGGER.error("Failed to create {} backup directory at {}: {}", backup_type, target, exc)
        return None

    if not resolved.is_dir():
        _LOGGER.error("{} backup path {} is not a directory.", backup_type, resolved)
        return None
    if not os.access(resolved, os.W_OK):
        _LOGGER.error("{} backup directory {} is not writable.", backup_type, resolved)
        return None

    _LOGGER.debug("Using {} backup directory {}", backup_type, resolved)
    return resolved
