"""
Core helpers for the default apps backup.
"""

from .default_apps import BackupResult, backup_default_apps_settings  # noqa: F401
from .settings import BackupSettings, resolve_settings  # noqa: F401
