"""Android virtual devices as listed by ``android list avd``.

The listing is free-form text; each device block contains at least::

    Name: Pixel_API30
    ...
    Tag/ABI: google_apis/x86

Blocks are separated by a dashed line.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from droidlib.errors import DeviceSpecError
from droidlib.runtime.android.controller import run_command, shell_prefix

logger = logging.getLogger(__name__)

DEVICE_SEPARATOR = "---------"
LISTING_HEADER = "Available Android Virtual Devices:"

_SPEC_RE = re.compile(r"Name:\s*(\S+).*?ABI:\s*(\S+)", re.DOTALL)


class Platform(str, enum.Enum):
    arm = "arm"
    x86 = "x86"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Device:
    name: str
    platform: Platform
    home_directory: Path


def classify_abi(abi: str, *, device_name: str, spec: str = "") -> Platform:
    # Newer SDKs print "Tag/ABI: <tag>/<abi>"; only the abi part is classified.
    token = abi.rsplit("/", 1)[-1]
    if token.startswith("arm"):
        return Platform.arm
    if token.endswith("x86"):
        return Platform.x86
    raise DeviceSpecError(
        f"Unknown target platform '{abi}' for device '{device_name}'",
        spec=spec,
        device_name=device_name,
    )


def parse_device_spec(text: str, *, avd_home: Path) -> Device:
    """Parse one device block of ``android list avd`` output."""

    m = _SPEC_RE.search(text)
    if not m:
        raise DeviceSpecError(
            f"Unrecognized device specification (expected 'Name:' and 'ABI:'): {text.strip()!r}",
            spec=text,
        )
    name, abi = m.group(1), m.group(2)
    platform = classify_abi(abi, device_name=name, spec=text)
    return Device(name=name, platform=platform, home_directory=avd_home / f"{name}.avd")


def split_device_specs(listing: str) -> List[str]:
    listing = listing.replace(LISTING_HEADER, "", 1)
    return [block for block in listing.split(DEVICE_SEPARATOR) if block.strip()]


class DeviceCatalog:
    def __init__(self, config) -> None:
        self._config = config

    def list_command(self) -> list[str]:
        return shell_prefix(is_windows=self._config.is_windows) + [
            self._config.android_path,
            "list",
            "avd",
        ]

    def list_devices(self) -> Dict[str, Device]:
        res = run_command(self.list_command())
        return self.parse_listing(res.stdout)

    def parse_listing(self, listing: str) -> Dict[str, Device]:
        avd_home = self._config.resolved_avd_home
        devices: Dict[str, Device] = {}
        for block in split_device_specs(listing):
            device = parse_device_spec(block, avd_home=avd_home)
            devices[device.name] = device
        logger.debug("discovered devices: %s", ", ".join(devices) or "<none>")
        return devices
