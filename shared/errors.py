"""
Error types shared by the backup runtime and its entry point.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence


class DefaultAppsBackupError(Exception):
    """Base class for errors raised while backing up default app settings."""


class EnvironmentLoadError(DefaultAppsBackupError):
    """Raised when backup paths cannot be derived from the environment configuration."""


class UnsupportedPlatformError(DefaultAppsBackupError):
    """Raised when a Windows-only facility is used on another platform."""


class MissingRegistryValueError(DefaultAppsBackupError, LookupError):
    """Raised when a required registry key or value is absent."""

    def __init__(self, key_path: str, value_name: Optional[str] = None) -> None:
        self.key_path = key_path
        self.value_name = value_name
        if value_name:
            message = f"Registry value '{value_name}' not found under {key_path}."
        else:
            message = f"Registry key not found: {key_path}."
        super().__init__(message)


class ExportCommandError(DefaultAppsBackupError):
    """Raised when an external export command exits unsuccessfully."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: Optional[int],
        stdout: str = "",
        stderr: str = "",
        *,
        reason: Optional[str] = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = reason or f"exited with code {returncode}"
        message = f"{self.command[0] if self.command else 'command'} {detail}"
        tail = (stderr or stdout or "").strip()
        if tail:
            message += f": {tail[-200:]}"
        super().__init__(message)


@dataclass(frozen=True)
class BackupError:
    """
    Diagnostic record for an exception caught by the backup routine.

    Mirrors the fields printed in the failure block: the message, the
    exception type, where it was raised, the offending statement, the
    stack trace and the chained inner exception when one exists.
    """

    message: str
    exception_type: str
    line_number: Optional[int] = None
    script_name: Optional[str] = None
    statement: Optional[str] = None
    stack_trace: Optional[str] = None
    inner_exception: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "BackupError":
        frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        origin = frames[-1] if frames else None
        stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)) if frames else None

        inner = exc.__cause__ or exc.__context__
        inner_text = f"{type(inner).__name__}: {inner}" if inner is not None else None

        return cls(
            message=str(exc) or type(exc).__name__,
            exception_type=type(exc).__name__,
            line_number=origin.lineno if origin else None,
            script_name=Path(origin.filename).name if origin else None,
            statement=(origin.line or None) if origin else None,
            stack_trace=stack_trace,
            inner_exception=inner_text,
        )
