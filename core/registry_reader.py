"""
Read-only access to the registry values describing default app choices.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple

from shared.errors import MissingRegistryValueError, UnsupportedPlatformError
from defaultapps_backup.defaultapps_backup import logger as app_logger

if sys.platform == "win32":
    import winreg
else:  # pragma: no cover - winreg only exists on Windows
    winreg = None

_LOGGER = app_logger.get_logger()

_HIVE_NAMES = {
    "HKCU": "HKEY_CURRENT_USER",
    "HKEY_CURRENT_USER": "HKEY_CURRENT_USER",
    "HKLM": "HKEY_LOCAL_MACHINE",
    "HKEY_LOCAL_MACHINE": "HKEY_LOCAL_MACHINE",
    "HKCR": "HKEY_CLASSES_ROOT",
    "HKEY_CLASSES_ROOT": "HKEY_CLASSES_ROOT",
    "HKU": "HKEY_USERS",
    "HKEY_USERS": "HKEY_USERS",
}


@dataclass(frozen=True)
class UserChoice:
    """The ProgId/Hash pair Windows stores under a UserChoice key."""

    prog_id: Optional[str]
    hash: Optional[str]


class RegistryReader:
    """Thin wrapper over winreg addressing keys by ``HIVE\\sub\\key`` paths."""

    def __init__(self, *, winreg_module=winreg) -> None:
        if winreg_module is None:
            raise UnsupportedPlatformError("Registry access requires Windows.")
        self._winreg = winreg_module

    def read_value(self, key_path: str, value_name: str) -> Any:
        """Return the data of ``value_name``, raising MissingRegistryValueError if absent."""
        try:
            with self._open_key(key_path) as key:
                value, _ = self._winreg.QueryValueEx(key, value_name)
        except FileNotFoundError as exc:
            raise MissingRegistryValueError(key_path, value_name) from exc
        return value

    def read_user_choice(self, key_path: str) -> Optional[UserChoice]:
        """Return the UserChoice stored at ``key_path``, or None when it is absent or unreadable."""
        try:
            with self._open_key(key_path) as key:
                return UserChoice(
                    prog_id=self._query_optional(key, "ProgId"),
                    hash=self._query_optional(key, "Hash"),
                )
        except FileNotFoundError:
            return None
        except OSError as exc:
            _LOGGER.debug("Skipping unreadable UserChoice key {}: {}", key_path, exc)
            return None

    @contextmanager
    def _open_key(self, key_path: str) -> Iterator:
        hive, subkey = self._split(key_path)
        key = self._winreg.OpenKey(hive, subkey, 0, self._winreg.KEY_READ)
        try:
            yield key
        finally:
            self._winreg.CloseKey(key)

    def _query_optional(self, key, value_name: str) -> Optional[Any]:
        try:
            value, _ = self._winreg.QueryValueEx(key, value_name)
            return value
        except OSError:
            return None

    def _split(self, key_path: str) -> Tuple[int, str]:
        hive_name, _, subkey = key_path.partition("\\")
        attribute = _HIVE_NAMES.get(hive_name.upper().rstrip(":"))
        if attribute is None:
            raise ValueError(f"Unsupported registry hive in path: {key_path}")
        return getattr(self._winreg, attribute), subkey
