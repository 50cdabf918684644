"""
Explicit configuration for a default apps backup run.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional

from shared.environment import load_environment
from shared.errors import EnvironmentLoadError
from defaultapps_backup.defaultapps_backup import logger as app_logger

_LOGGER = app_logger.get_logger()

DEFAULT_SUBDIRECTORY = "DefaultApps"
DEFAULT_COMMAND_TIMEOUT = 120
SHARED_DIRECTORY_NAME = "shared"


@dataclass(frozen=True)
class BackupSettings:
    machine_backup_path: Path
    shared_backup_path: Path
    backup_subdirectory: str = DEFAULT_SUBDIRECTORY
    command_timeout: int = DEFAULT_COMMAND_TIMEOUT

    @classmethod
    def from_environment(cls, environ: Mapping[str, str]) -> "BackupSettings":
        """Derive ``{BACKUP_ROOT}/{MACHINE_NAME}`` and ``{BACKUP_ROOT}/shared``."""
        backup_root = (environ.get("BACKUP_ROOT") or "").strip()
        machine_name = (environ.get("MACHINE_NAME") or "").strip()
        if not backup_root or not machine_name:
            raise EnvironmentLoadError("BACKUP_ROOT and MACHINE_NAME must both be set.")
        root = Path(backup_root)
        return cls(
            machine_backup_path=root / machine_name,
            shared_backup_path=root / SHARED_DIRECTORY_NAME,
        )


def resolve_settings(
    machine_backup_path: Optional[str | Path] = None,
    shared_backup_path: Optional[str | Path] = None,
    *,
    environment_loader: Callable[[], bool] = load_environment,
    environ: Optional[Mapping[str, str]] = None,
) -> BackupSettings:
    """
    Build settings from explicit paths, consulting the environment only
    when either path is missing.

    Raises EnvironmentLoadError when the loader reports failure.
    """
    if machine_backup_path and shared_backup_path:
        return BackupSettings(
            machine_backup_path=Path(machine_backup_path),
            shared_backup_path=Path(shared_backup_path),
        )

    if not environment_loader():
        raise EnvironmentLoadError("Failed to load environment configuration.")

    settings = BackupSettings.from_environment(os.environ if environ is None else environ)
    _LOGGER.debug(
        "Resolved backup roots from environment: machine={}, shared={}",
        settings.machine_backup_path,
        settings.shared_backup_path,
    )
    return settings
