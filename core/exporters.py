"""
Wrappers around the Windows tools that produce the exported artefacts:
``reg export``, ``dism /Export-DefaultAppAssociations`` and PowerShell's
AppX package listing.
"""

from __future__ import annotations

import json
import subprocess
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from shared.errors import ExportCommandError
from defaultapps_backup.defaultapps_backup import logger as app_logger

from .settings import DEFAULT_COMMAND_TIMEOUT

_LOGGER = app_logger.get_logger()

APPX_MANIFEST_NAME = "AppxManifest.xml"
_PACKAGE_QUERY = (
    "Get-AppxPackage | Select-Object Name, PackageFamilyName, "
    "@{Name='SignatureKind';Expression={$_.SignatureKind.ToString()}}, InstallLocation "
    "| ConvertTo-Json -Compress -Depth 2"
)


@dataclass(slots=True)
class KeyExportOutcome:
    key: str
    destination: Path
    succeeded: bool
    detail: str = ""


class SystemExporter:
    """Runs the OS export commands, raising ExportCommandError on failure."""

    def __init__(
        self,
        *,
        runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
        timeout: int = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        self._runner = runner or subprocess.run
        self.timeout = timeout

    def export_registry_key(self, key_path: str, destination: Path) -> KeyExportOutcome:
        """Export one key to a .reg file; failures are reported, not raised."""
        cmd = ["reg", "export", key_path, str(destination), "/y"]
        try:
            destination.unlink(missing_ok=True)
            self._run(cmd)
        except (ExportCommandError, OSError) as exc:
            _LOGGER.warning("Could not export registry key {}: {}", key_path, exc)
            return KeyExportOutcome(key=key_path, destination=destination, succeeded=False, detail=str(exc))
        return KeyExportOutcome(key=key_path, destination=destination, succeeded=True)

    def export_default_app_associations(self, destination: Path) -> Path:
        cmd = ["dism.exe", "/Online", f"/Export-DefaultAppAssociations:{destination}"]
        destination.unlink(missing_ok=True)
        self._run(cmd)
        if not destination.exists():
            raise ExportCommandError(cmd, 0, reason=f"did not produce {destination.name}")
        return destination

    def list_app_packages(self) -> List[Dict[str, Any]]:
        """Return installed AppX packages as dicts with Name, PackageFamilyName, SignatureKind, InstallLocation."""
        cmd = ["powershell.exe", "-NoProfile", "-NonInteractive", "-Command", _PACKAGE_QUERY]
        completed = self._run(cmd)
        output = (completed.stdout or "").strip()
        if not output or output == "null":
            return []
        try:
            packages = json.loads(output)
        except json.JSONDecodeError as exc:
            raise ExportCommandError(cmd, completed.returncode, output, reason="returned invalid JSON") from exc
        if isinstance(packages, dict):
            packages = [packages]
        return [package for package in packages if isinstance(package, dict)]

    def _run(self, cmd: Sequence[str]) -> subprocess.CompletedProcess:
        _LOGGER.debug("Running: {}", " ".join(cmd))
        try:
            result = self._runner(list(cmd), capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            raise ExportCommandError(cmd, None, reason=f"timed out after {self.timeout} seconds") from exc
        except OSError as exc:
            raise ExportCommandError(cmd, None, reason=f"could not be started ({exc})") from exc

        if result.returncode != 0:
            raise ExportCommandError(cmd, result.returncode, result.stdout or "", result.stderr or "")
        return result


def read_manifest_capabilities(install_location: Optional[str | Path]) -> List[str]:
    """
    Return the capability names declared in a package's AppxManifest.xml.

    Covers every element beneath ``<Capabilities>`` regardless of namespace
    (Capability, rescap:Capability, DeviceCapability, ...). A missing or
    unreadable manifest yields an empty list.
    """
    if not install_location:
        return []
    manifest_path = Path(install_location) / APPX_MANIFEST_NAME
    try:
        root = ET.parse(manifest_path).getroot()
    except (OSError, ET.ParseError) as exc:
        _LOGGER.debug("No readable manifest at {}: {}", manifest_path, exc)
        return []

    names: List[str] = []
    for element in root.iter():
        if _local_name(element.tag) != "Capabilities":
            continue
        for child in element:
            name = child.get("Name")
            if name:
                names.append(name)
    return names


def parse_default_associations(xml_text: str) -> List[Dict[str, str]]:
    """Summarise a DISM default association export as a list of dicts."""
    if not xml_text or not xml_text.strip():
        return []
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        _LOGGER.warning("Default app associations XML could not be parsed: {}", exc)
        return []

    associations = []
    for element in root.iter():
        if _local_name(element.tag) != "Association":
            continue
        identifier = element.get("Identifier") or "Unknown"
        associations.append(
            {
                "Identifier": identifier,
                "ProgId": element.get("ProgId") or "Unknown",
                "ApplicationName": element.get("ApplicationName") or "Unknown",
                "Type": "FileExtension" if "." in identifier else "UrlProtocol",
            }
        )
    return associations


def _local_name(tag: Any) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]
