"""System image helpers for emulator devices.

The emulator keeps per-device settings in ``<avd>/hardware-qemu.ini``. Its
``kernel.path`` entry points into the SDK system-image directory; the
reference ``system.img`` sits next to the kernel.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List

from droidlib.catalog.devices import Device
from droidlib.errors import ConfigError

logger = logging.getLogger(__name__)

BOOT_CONFIG_NAME = "hardware-qemu.ini"
KERNEL_PATH_KEY = "kernel.path"
SYSTEM_IMAGE_NAME = "system.img"
USERDATA_IMAGE_NAME = "userdata-qemu.img"

NAND_PAGE_SIZE = 512
NAND_EXTRA_SIZE = 0


def boot_config_path(device: Device) -> Path:
    return device.home_directory / BOOT_CONFIG_NAME


def device_system_image(device: Device) -> Path:
    return device.home_directory / SYSTEM_IMAGE_NAME


def device_userdata_image(device: Device) -> Path:
    return device.home_directory / USERDATA_IMAGE_NAME


def read_kernel_path(config_path: Path) -> Path:
    if not config_path.is_file():
        raise ConfigError(f"Boot configuration not found: {config_path}")
    for raw in config_path.read_text(encoding="utf-8", errors="replace").splitlines():
        if raw.startswith(KERNEL_PATH_KEY):
            _, _, value = raw.partition("=")
            value = value.strip()
            if value:
                return Path(value)
    raise ConfigError(f"Haven't found {KERNEL_PATH_KEY} in {config_path}")


def reference_system_image(device: Device) -> Path:
    kernel = read_kernel_path(boot_config_path(device))
    return kernel.parent / SYSTEM_IMAGE_NAME


@dataclass(frozen=True)
class PreparedImage:
    path: Path
    copied_from: Path | None


def prepare_system_image(device: Device) -> PreparedImage:
    """Copy the reference image into the device directory once.

    When the device already has its own ``system.img`` it is reused as is.
    """

    target = device_system_image(device)
    if target.exists():
        logger.info("using existing image file at %s", target)
        return PreparedImage(path=target, copied_from=None)

    source = reference_system_image(device)
    if not source.is_file():
        raise ConfigError(f"Reference system image not found: {source}")
    logger.info("copying system image from %s to %s", source, target)
    shutil.copyfile(source, target)
    return PreparedImage(path=target, copied_from=source)


def nand_size(image: Path, *, headroom_bytes: int) -> int:
    return image.stat().st_size + int(headroom_bytes)


def nand_qemu_args(image: Path, *, headroom_bytes: int) -> List[str]:
    """Emulator args that back the system partition with ``image`` directly."""

    size = nand_size(image, headroom_bytes=headroom_bytes)
    spec = (
        f"system,size={size:#x},file={image.absolute()},"
        f"pagesize={NAND_PAGE_SIZE},extrasize={NAND_EXTRA_SIZE}"
    )
    return ["-qemu", "-nand", spec]
