"""
defaultapps_backup package.

Console-facing pieces of the default apps backup: logging setup and the
diagnostic block printed when a backup run fails.
"""

__all__ = [
    "diagnostics",
    "logger",
]
