"""
Backup of Windows default application associations.

Exports the registry keys that hold file-type and URL protocol
associations, the DISM default association XML, per-extension UserChoice
records, packaged app capabilities and a summary of the common default
handlers into the ``DefaultApps`` backup directory.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from shared.environment import load_environment
from shared.errors import BackupError
from defaultapps_backup.defaultapps_backup import diagnostics
from defaultapps_backup.defaultapps_backup import logger as app_logger

from .backup_directory import initialize_backup_directory
from .exporters import KeyExportOutcome, SystemExporter, parse_default_associations, read_manifest_capabilities
from .registry_reader import RegistryReader
from .settings import BackupSettings, resolve_settings

_LOGGER = app_logger.get_logger()

BACKUP_LABEL = "Default Apps"

FILE_EXTS_KEY = r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\FileExts"
URL_ASSOCIATIONS_KEY = r"HKCU\Software\Microsoft\Windows\Shell\Associations\UrlAssociations"

REGISTRY_KEYS = (
    FILE_EXTS_KEY,
    r"HKLM\SOFTWARE\Classes",
    r"HKCU\Software\Classes",
    r"HKCU\Software\Microsoft\Windows\Shell\Associations",
    r"HKLM\SOFTWARE\Microsoft\Windows\CurrentVersion\Explorer\FileAssociation",
    r"HKCU\Software\Microsoft\Windows\CurrentVersion\ApplicationAssociationToasts",
    r"HKLM\SOFTWARE\RegisteredApplications",
    URL_ASSOCIATIONS_KEY,
    r"HKLM\SOFTWARE\Microsoft\Windows\Shell\Associations\UrlAssociations",
)

MONITORED_EXTENSIONS = (
    ".txt", ".pdf", ".doc", ".docx", ".xls", ".xlsx",
    ".jpg", ".jpeg", ".png", ".gif", ".bmp",
    ".mp3", ".mp4", ".avi", ".mkv",
    ".zip", ".rar",
    ".html", ".xml",
    ".exe",
)

BROWSER_SETTING_KEYS = {
    "DefaultBrowser": f"{URL_ASSOCIATIONS_KEY}\\http\\UserChoice",
    "PDFViewer": f"{FILE_EXTS_KEY}\\.pdf\\UserChoice",
    "ImageViewer": f"{FILE_EXTS_KEY}\\.jpg\\UserChoice",
    "VideoPlayer": f"{FILE_EXTS_KEY}\\.mp4\\UserChoice",
    "MusicPlayer": f"{FILE_EXTS_KEY}\\.mp3\\UserChoice",
}

DEFAULT_APPS_XML = "defaultapps.xml"
DEFAULT_ASSOCIATIONS_JSON = "default_app_associations.json"
USER_CHOICES_JSON = "user_choices.json"
APP_CAPABILITIES_JSON = "app_capabilities.json"
BROWSER_SETTINGS_JSON = "browser_settings.json"
SNAPSHOT_FILES = (
    DEFAULT_ASSOCIATIONS_JSON,
    USER_CHOICES_JSON,
    APP_CAPABILITIES_JSON,
    BROWSER_SETTINGS_JSON,
)


@dataclass
class BackupResult:
    success: bool
    backup_path: Optional[Path] = None
    key_exports: List[KeyExportOutcome] = field(default_factory=list)
    files_written: List[Path] = field(default_factory=list)
    error: Optional[BackupError] = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def failed_keys(self) -> List[str]:
        return [outcome.key for outcome in self.key_exports if not outcome.succeeded]


def user_choice_key(extension: str) -> str:
    return f"{FILE_EXTS_KEY}\\{extension}\\UserChoice"


def registry_export_filename(key_path: str, used: Set[str]) -> str:
    """
    Name the .reg file after the key's last segment.

    Keys sharing a last segment across hives (Classes, UrlAssociations) get
    the hive prefixed on the later occurrence so no export overwrites another.
    """
    hive, _, _ = key_path.partition("\\")
    leaf = key_path.rstrip("\\").rsplit("\\", 1)[-1]
    name = f"{leaf}.reg"
    if name.lower() in used:
        name = f"{hive.upper()}_{leaf}.reg"
    used.add(name.lower())
    return name


def export_registry_keys(
    exporter: SystemExporter,
    backup_path: Path,
    keys: Iterable[str] = REGISTRY_KEYS,
) -> List[KeyExportOutcome]:
    used: Set[str] = set()
    outcomes = []
    for key_path in keys:
        destination = backup_path / registry_export_filename(key_path, used)
        outcomes.append(exporter.export_registry_key(key_path, destination))
    return outcomes


def collect_user_choices(
    registry: RegistryReader,
    extensions: Iterable[str] = MONITORED_EXTENSIONS,
) -> List[Dict[str, Any]]:
    """Return UserChoice records for the extensions that have one; others are skipped."""
    choices = []
    for extension in extensions:
        choice = registry.read_user_choice(user_choice_key(extension))
        if choice is None:
            continue
        choices.append({"Extension": extension, "ProgId": choice.prog_id, "Hash": choice.hash})
    return choices


def collect_app_capabilities(exporter: SystemExporter) -> List[Dict[str, Any]]:
    capabilities = []
    for package in exporter.list_app_packages():
        if package.get("SignatureKind") == "System":
            continue
        capabilities.append(
            {
                "Name": package.get("Name"),
                "PackageFamilyName": package.get("PackageFamilyName"),
                "Capabilities": read_manifest_capabilities(package.get("InstallLocation")),
            }
        )
    return capabilities


def collect_browser_settings(registry: RegistryReader) -> Dict[str, Any]:
    """Read the five default handler ProgIds; any missing value raises."""
    return {name: registry.read_value(key_path, "ProgId") for name, key_path in BROWSER_SETTING_KEYS.items()}


def write_json(path: Path, data: Any) -> Path:
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


class DefaultAppsBackup:
    """Runs the export steps for one backup directory."""

    def __init__(
        self,
        settings: BackupSettings,
        *,
        registry: Optional[RegistryReader] = None,
        exporter: Optional[SystemExporter] = None,
        runner: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.settings = settings
        self._registry = registry
        self._exporter = exporter or SystemExporter(runner=runner, timeout=settings.command_timeout)

    def run(self) -> BackupResult:
        app_logger.progress("Backing up {} Settings...", BACKUP_LABEL)
        backup_path = initialize_backup_directory(
            self.settings.backup_subdirectory,
            BACKUP_LABEL,
            self.settings.machine_backup_path,
        )
        if not backup_path:
            app_logger.failure("Failed to initialize backup directory for {} Settings", BACKUP_LABEL)
            return BackupResult(success=False)

        result = BackupResult(success=False, backup_path=backup_path)
        try:
            registry = self._registry or RegistryReader()

            # Snapshots a step skips or fails on must not survive from an earlier run.
            for name in SNAPSHOT_FILES:
                (backup_path / name).unlink(missing_ok=True)

            result.key_exports = export_registry_keys(self._exporter, backup_path)
            result.files_written.extend(outcome.destination for outcome in result.key_exports if outcome.succeeded)
            if result.failed_keys:
                _LOGGER.info("{} registry key(s) could not be exported.", len(result.failed_keys))

            xml_path = self._exporter.export_default_app_associations(backup_path / DEFAULT_APPS_XML)
            result.files_written.append(xml_path)
            associations = parse_default_associations(xml_path.read_text(encoding="utf-8-sig", errors="replace"))
            result.files_written.append(write_json(backup_path / DEFAULT_ASSOCIATIONS_JSON, associations))

            user_choices = collect_user_choices(registry)
            if user_choices:
                result.files_written.append(write_json(backup_path / USER_CHOICES_JSON, user_choices))
            else:
                _LOGGER.debug("No UserChoice records found for monitored extensions.")

            capabilities = collect_app_capabilities(self._exporter)
            result.files_written.append(write_json(backup_path / APP_CAPABILITIES_JSON, capabilities))

            browser_settings = collect_browser_settings(registry)
            result.files_written.append(write_json(backup_path / BROWSER_SETTINGS_JSON, browser_settings))
        except Exception as exc:
            result.error = BackupError.from_exception(exc)
            _LOGGER.opt(exception=exc).debug("Default apps backup failed")
            diagnostics.report_error(result.error)
            return result

        result.success = True
        app_logger.success("{} Settings backed up successfully to: {}", BACKUP_LABEL, backup_path)
        return result


def backup_default_apps_settings(
    machine_backup_path: Optional[str | Path] = None,
    shared_backup_path: Optional[str | Path] = None,
    *,
    settings: Optional[BackupSettings] = None,
    environment_loader: Callable[[], bool] = load_environment,
    registry: Optional[RegistryReader] = None,
    runner: Optional[Callable[..., Any]] = None,
) -> BackupResult:
    """
    Back up default app associations and return the run's result.

    Paths default to the environment configuration; an unloadable
    environment raises EnvironmentLoadError before anything is written.
    """
    if settings is None:
        settings = resolve_settings(
            machine_backup_path,
            shared_backup_path,
            environment_loader=environment_loader,
        )
    return DefaultAppsBackup(settings, registry=registry, runner=runner).run()
