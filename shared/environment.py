"""
Environment configuration loader.

Reads a ``config.env`` file of ``KEY=VALUE`` lines into the process
environment so the backup roots can be derived without explicit paths.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, MutableMapping, Optional

from defaultapps_backup.defaultapps_backup import logger as app_logger

_LOGGER = app_logger.get_logger()

CONFIG_PATH_VARIABLE = "DEFAULTAPPS_CONFIG"
DEFAULT_CONFIG_NAME = "config.env"
REQUIRED_VARIABLES = ("BACKUP_ROOT", "MACHINE_NAME")


def load_environment(
    config_path: Optional[Path] = None,
    environ: Optional[MutableMapping[str, str]] = None,
) -> bool:
    """
    Populate ``environ`` from the environment config file.

    Variables already present in ``environ`` take precedence over the file.
    A missing file is not an error in itself; the call succeeds as long as
    every required variable is set afterwards.
    """
    target = os.environ if environ is None else environ
    path = config_path or _default_config_path(target)

    if path.exists():
        try:
            values = parse_env_file(path)
        except OSError as exc:
            _LOGGER.error("Unable to read environment config {}: {}", path, exc)
            return False
        for name, value in values.items():
            target.setdefault(name, value)
        _LOGGER.debug("Loaded {} variable(s) from {}", len(values), path)
    else:
        _LOGGER.debug("Environment config {} not found; relying on process environment.", path)

    missing = [name for name in REQUIRED_VARIABLES if not target.get(name, "").strip()]
    if missing:
        _LOGGER.error("Missing required environment variable(s): {}", ", ".join(missing))
        return False
    return True


def parse_env_file(path: Path) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` lines, ignoring blanks, comments and malformed entries."""
    values: Dict[str, str] = {}
    for lineno, raw_line in enumerate(path.read_text(encoding="utf-8-sig").splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()

        name, sep, value = line.partition("=")
        name = name.strip()
        if not sep or not name or not name.replace("_", "").isalnum():
            _LOGGER.warning("Skipping malformed line {} in {}: {!r}", lineno, path, raw_line)
            continue

        values[name] = _unquote(value.strip())
    return values


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def _default_config_path(environ: MutableMapping[str, str]) -> Path:
    override = environ.get(CONFIG_PATH_VARIABLE)
    if override:
        return Path(override)
    return Path.cwd() / DEFAULT_CONFIG_NAME
