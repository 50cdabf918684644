"""
Entry point for the default apps backup.
"""

from __future__ import annotations

import argparse
import ctypes
import sys
from pathlib import Path
from typing import Optional, Sequence

from core.default_apps import backup_default_apps_settings
from shared.environment import load_environment
from shared.errors import EnvironmentLoadError
from defaultapps_backup.defaultapps_backup import logger as app_logger

_LOGGER = app_logger.get_logger()


def _is_elevated() -> Optional[bool]:
    """Return whether the process runs as administrator, or None off Windows."""
    if sys.platform != "win32":
        return None
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except (AttributeError, OSError):
        return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="defaultapps-backup",
        description="Export Windows default app associations to a backup directory.",
    )
    parser.add_argument("--machine-backup-path", help="Machine-specific backup root.")
    parser.add_argument("--shared-backup-path", help="Shared backup root.")
    parser.add_argument("--config", type=Path, help="Environment file providing BACKUP_ROOT and MACHINE_NAME.")
    parser.add_argument("--log-file", type=Path, help="Write the detailed log here instead of the default location.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the backup and translate the result into an exit code."""
    args = build_parser().parse_args(argv)
    if args.log_file:
        app_logger.configure(args.log_file, force=True)

    if sys.platform != "win32":
        app_logger.failure("Default apps backup is only supported on Windows.")
        return 1

    if _is_elevated() is False:
        _LOGGER.warning("Not running elevated; the DISM default association export will likely fail.")

    try:
        result = backup_default_apps_settings(
            args.machine_backup_path,
            args.shared_backup_path,
            environment_loader=lambda: load_environment(args.config),
        )
    except EnvironmentLoadError as exc:
        app_logger.failure("Failed to load environment configuration: {}", exc)
        return 1

    return 0 if result else 1


if __name__ == "__main__":
    raise SystemExit(main())
