"""
Formatting of the failure block printed when a backup run raises.
"""

from __future__ import annotations

from typing import List

from shared.errors import BackupError

from . import logger


def format_error_block(error: BackupError, *, title: str = "Failed to backup Default Apps settings") -> List[str]:
    """Return the lines of the diagnostic block for ``error``."""
    lines = [
        title,
        f"Error Message: {error.message}",
        f"Error Type: {error.exception_type}",
        f"Error Line: {error.line_number if error.line_number is not None else 'unknown'}",
        f"Error Script: {error.script_name or 'unknown'}",
        f"Error Statement: {(error.statement or '').strip() or 'unknown'}",
    ]
    if error.stack_trace:
        lines.append("Stack Trace:")
        lines.extend(line for line in error.stack_trace.rstrip().splitlines())
    if error.inner_exception:
        lines.append(f"Inner Exception: {error.inner_exception}")
    return lines


def report_error(error: BackupError) -> None:
    """Print the diagnostic block as failure-coloured console lines."""
    for line in format_error_block(error):
        logger.failure(line)
