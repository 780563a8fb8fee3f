from __future__ import annotations

import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

from droidlib.catalog.devices import DeviceCatalog, Platform, parse_device_spec
from droidlib.config import InstallerConfig
from droidlib.errors import DeviceSpecError, InvalidInputError

AVD_HOME = Path("/home/dev/.android/avd")

LISTING = """Available Android Virtual Devices:
    Name: Nexus_S_API19
    Device: Nexus S (Google)
    Path: /home/dev/.android/avd/Nexus_S_API19.avd
  Target: Android 4.4.2 (API level 19)
 Tag/ABI: default/armeabi-v7a
    Skin: 480x800
---------
    Name: Pixel_API30
    Device: pixel (Google)
    Path: /home/dev/.android/avd/Pixel_API30.avd
  Target: Google APIs (Google Inc.)
          Based on: Android 11.0 (R) Tag/ABI: google_apis/x86
"""


def test_parse_device_spec_x86_example() -> None:
    device = parse_device_spec("---------\nName: Pixel_API30\nABI: x86\n", avd_home=AVD_HOME)
    assert device.name == "Pixel_API30"
    assert device.platform is Platform.x86
    assert device.home_directory == AVD_HOME / "Pixel_API30.avd"


def test_parse_device_spec_arm_prefix() -> None:
    device = parse_device_spec("Name: Nexus\nABI: armeabi-v7a\n", avd_home=AVD_HOME)
    assert device.platform is Platform.arm


def test_parse_device_spec_tolerates_text_between_fields() -> None:
    text = "  Name: Tablet\n  Device: 10.1in\n  Path: /x\n\n  Target: API 19\n Tag/ABI: default/x86\n"
    device = parse_device_spec(text, avd_home=AVD_HOME)
    assert device.name == "Tablet"
    assert device.platform is Platform.x86


def test_parse_device_spec_unknown_abi_names_device_and_token() -> None:
    with pytest.raises(DeviceSpecError) as excinfo:
        parse_device_spec("Name: Pixel_API30\nABI: mips\n", avd_home=AVD_HOME)
    msg = str(excinfo.value)
    assert "Pixel_API30" in msg
    assert "mips" in msg
    assert excinfo.value.device_name == "Pixel_API30"
    assert isinstance(excinfo.value, InvalidInputError)


def test_parse_device_spec_x86_64_is_not_x86() -> None:
    with pytest.raises(DeviceSpecError) as excinfo:
        parse_device_spec("Name: Big\nABI: x86_64\n", avd_home=AVD_HOME)
    assert "x86_64" in str(excinfo.value)


def test_parse_device_spec_without_name_and_abi_is_structural_failure() -> None:
    with pytest.raises(DeviceSpecError) as excinfo:
        parse_device_spec("Device: Nexus S\nTarget: API 19\n", avd_home=AVD_HOME)
    assert excinfo.value.device_name is None


def test_device_catalog_lists_devices_by_name(monkeypatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def fake_run(cmd, **kwargs):
        calls.append(list(cmd))
        return SimpleNamespace(stdout=LISTING, stderr="", returncode=0)

    monkeypatch.setattr(subprocess, "run", fake_run)

    config = InstallerConfig(user_home=tmp_path, android_path="/sdk/tools/android")
    devices = DeviceCatalog(config).list_devices()

    assert calls == [["/sdk/tools/android", "list", "avd"]]
    assert sorted(devices) == ["Nexus_S_API19", "Pixel_API30"]
    assert devices["Nexus_S_API19"].platform is Platform.arm
    assert devices["Pixel_API30"].platform is Platform.x86
    assert devices["Pixel_API30"].home_directory == tmp_path / ".android" / "avd" / "Pixel_API30.avd"


def test_device_catalog_runs_through_cmd_on_windows(tmp_path: Path) -> None:
    config = InstallerConfig(user_home=tmp_path, is_windows=True)
    assert DeviceCatalog(config).list_command() == ["cmd", "/c", "android", "list", "avd"]


def test_device_catalog_empty_listing_yields_no_devices(tmp_path: Path) -> None:
    config = InstallerConfig(user_home=tmp_path)
    assert DeviceCatalog(config).parse_listing("Available Android Virtual Devices:\n") == {}


def test_device_catalog_rejects_unparseable_block(tmp_path: Path) -> None:
    config = InstallerConfig(user_home=tmp_path)
    listing = LISTING + "---------\n    Name: Broken\n    Tag/ABI: default/mips\n"
    with pytest.raises(DeviceSpecError) as excinfo:
        DeviceCatalog(config).parse_listing(listing)
    assert "Broken" in str(excinfo.value)
