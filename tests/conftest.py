"""Shared fixtures: an in-memory winreg stand-in and a scripted subprocess runner."""

import json
import subprocess
from pathlib import Path

import pytest

from core.registry_reader import RegistryReader
from core.settings import BackupSettings
from defaultapps_backup.defaultapps_backup import logger as app_logger

SAMPLE_ASSOCIATIONS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<DefaultAssociations>
  <Association Identifier=".htm" ProgId="ChromeHTML" ApplicationName="Google Chrome" />
  <Association Identifier=".pdf" ProgId="AcroExch.Document.DC" ApplicationName="Adobe Acrobat" />
  <Association Identifier="http" ProgId="ChromeHTML" ApplicationName="Google Chrome" />
</DefaultAssociations>
"""

SAMPLE_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<Package xmlns="http://schemas.microsoft.com/appx/manifest/foundation/windows10"
         xmlns:rescap="http://schemas.microsoft.com/appx/manifest/foundation/windows10/restrictedcapabilities">
  <Identity Name="Contoso.Photos" Version="1.0.0.0" />
  <Capabilities>
    <Capability Name="internetClient" />
    <rescap:Capability Name="runFullTrust" />
    <DeviceCapability Name="webcam" />
  </Capabilities>
</Package>
"""

DEFAULT_USER_CHOICES = {
    r"HKCU\Software\Microsoft\Windows\Shell\Associations\UrlAssociations\http\UserChoice": {
        "ProgId": "ChromeHTML",
        "Hash": "h-http",
    },
    r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\FileExts\.pdf\UserChoice": {
        "ProgId": "AcroExch.Document.DC",
        "Hash": "h-pdf",
    },
    r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\FileExts\.jpg\UserChoice": {
        "ProgId": "AppX43hnxtbyyps62jhe9sqpdzxn1790zetc",
        "Hash": "h-jpg",
    },
    r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\FileExts\.mp4\UserChoice": {
        "ProgId": "VLC.mp4",
        "Hash": "h-mp4",
    },
    r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\FileExts\.mp3\UserChoice": {
        "ProgId": "VLC.mp3",
        "Hash": "h-mp3",
    },
    r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\FileExts\.txt\UserChoice": {
        "ProgId": "txtfile",
        "Hash": "h-txt",
    },
}


class _FakeKey:
    def __init__(self, path):
        self.path = path
        self.closed = False


class FakeWinreg:
    """Dictionary-backed subset of the winreg module."""

    HKEY_CLASSES_ROOT = 0x80000000
    HKEY_CURRENT_USER = 0x80000001
    HKEY_LOCAL_MACHINE = 0x80000002
    HKEY_USERS = 0x80000003
    KEY_READ = 0x20019
    REG_SZ = 1

    _HIVES = {
        "HKCR": HKEY_CLASSES_ROOT,
        "HKCU": HKEY_CURRENT_USER,
        "HKLM": HKEY_LOCAL_MACHINE,
        "HKU": HKEY_USERS,
    }

    def __init__(self):
        self.keys = {}
        self.opened = []
        self.denied = set()

    def _path(self, key_path):
        hive, _, subkey = key_path.partition("\\")
        return self._HIVES[hive], subkey.lower()

    def set_key(self, key_path, **values):
        self.keys[self._path(key_path)] = dict(values)

    def deny(self, key_path):
        self.denied.add(self._path(key_path))

    def OpenKey(self, hive, subkey, reserved=0, access=KEY_READ):
        path = (hive, subkey.lower())
        if path in self.denied:
            raise PermissionError(5, "Access is denied")
        if path not in self.keys:
            raise FileNotFoundError(2, "The system cannot find the file specified")
        key = _FakeKey(path)
        self.opened.append(key)
        return key

    def QueryValueEx(self, key, name):
        values = self.keys[key.path]
        if name not in values:
            raise FileNotFoundError(2, "The system cannot find the file specified")
        return values[name], self.REG_SZ

    def CloseKey(self, key):
        key.closed = True


class FakeRunner:
    """Stands in for subprocess.run, producing the files reg.exe and dism.exe would."""

    def __init__(self):
        self.calls = []
        self.missing_keys = set()
        self.dism_returncode = 0
        self.dism_xml = SAMPLE_ASSOCIATIONS_XML
        self.packages = []
        self.powershell_output = None

    def commands(self, program):
        return [cmd for cmd in self.calls if cmd[0] == program]

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        program = cmd[0]
        if program == "reg":
            key, destination = cmd[2], cmd[3]
            if key in self.missing_keys:
                return subprocess.CompletedProcess(
                    cmd, 1, "", "ERROR: The system was unable to find the specified registry key or value."
                )
            Path(destination).write_text(
                f"Windows Registry Editor Version 5.00\n\n[{key}]\n", encoding="utf-8"
            )
            return subprocess.CompletedProcess(cmd, 0, "The operation completed successfully.\n", "")
        if program == "dism.exe":
            if self.dism_returncode != 0:
                return subprocess.CompletedProcess(cmd, self.dism_returncode, "Error: 740\nElevated permissions are required.", "")
            destination = cmd[2].split(":", 1)[1]
            Path(destination).write_text(self.dism_xml, encoding="utf-8")
            return subprocess.CompletedProcess(cmd, 0, "The operation completed successfully.\n", "")
        if program == "powershell.exe":
            output = self.powershell_output
            if output is None:
                output = json.dumps(self.packages)
            return subprocess.CompletedProcess(cmd, 0, output, "")
        raise AssertionError(f"Unexpected command: {cmd}")


@pytest.fixture(autouse=True, scope="session")
def _file_only_logging(tmp_path_factory):
    app_logger.configure(tmp_path_factory.mktemp("logs") / "tests.log", force=True, console=False)


@pytest.fixture
def fake_winreg():
    fake = FakeWinreg()
    for key_path, values in DEFAULT_USER_CHOICES.items():
        fake.set_key(key_path, **values)
    return fake


@pytest.fixture
def registry(fake_winreg):
    return RegistryReader(winreg_module=fake_winreg)


@pytest.fixture
def app_install_dir(tmp_path):
    location = tmp_path / "WindowsApps" / "Contoso.Photos_1.0.0.0_x64__8wekyb3d8bbwe"
    location.mkdir(parents=True)
    (location / "AppxManifest.xml").write_text(SAMPLE_MANIFEST, encoding="utf-8")
    return location


@pytest.fixture
def fake_runner(app_install_dir):
    runner = FakeRunner()
    runner.packages = [
        {
            "Name": "Microsoft.Windows.ShellExperienceHost",
            "PackageFamilyName": "Microsoft.Windows.ShellExperienceHost_cw5n1h2txyewy",
            "SignatureKind": "System",
            "InstallLocation": "C:\\Windows\\SystemApps\\ShellExperienceHost_cw5n1h2txyewy",
        },
        {
            "Name": "Contoso.Photos",
            "PackageFamilyName": "Contoso.Photos_8wekyb3d8bbwe",
            "SignatureKind": "Store",
            "InstallLocation": str(app_install_dir),
        },
        {
            "Name": "Fabrikam.DevTool",
            "PackageFamilyName": "Fabrikam.DevTool_abcdefghjkmnp",
            "SignatureKind": "Developer",
            "InstallLocation": None,
        },
    ]
    return runner


@pytest.fixture
def settings(tmp_path):
    return BackupSettings(
        machine_backup_path=tmp_path / "backup" / "WORKSTATION01",
        shared_backup_path=tmp_path / "backup" / "shared",
    )
