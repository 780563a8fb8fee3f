from __future__ import annotations

import shutil
from pathlib import Path

import pytest
from fakes import make_config, make_device

from droidlib.errors import ConfigError
from droidlib.install import system_image
from droidlib.install.system_image import (
    nand_qemu_args,
    prepare_system_image,
    read_kernel_path,
    reference_system_image,
)


def _write_boot_config(device_dir: Path, sdk_dir: Path) -> None:
    sdk_dir.mkdir(parents=True, exist_ok=True)
    (sdk_dir / "kernel-qemu").write_bytes(b"kernel")
    (sdk_dir / "system.img").write_bytes(b"reference-image")
    (device_dir / "hardware-qemu.ini").write_text(
        "hw.cpu.arch = x86\n"
        f"kernel.path = {sdk_dir / 'kernel-qemu'}\n"
        "disk.ramdisk.path = ramdisk.img\n",
        encoding="utf-8",
    )


def test_reference_image_is_sibling_of_kernel(tmp_path: Path) -> None:
    config = make_config(tmp_path)
    device = make_device(config)
    sdk = tmp_path / "sdk" / "system-images" / "android-19" / "x86"
    _write_boot_config(device.home_directory, sdk)

    assert reference_system_image(device) == sdk / "system.img"


def test_missing_kernel_path_is_reported(tmp_path: Path) -> None:
    cfg = tmp_path / "hardware-qemu.ini"
    cfg.write_text("hw.cpu.arch = x86\n", encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        read_kernel_path(cfg)
    assert "kernel.path" in str(excinfo.value)
    assert str(cfg) in str(excinfo.value)


def test_prepare_system_image_copies_reference_only_once(tmp_path: Path, monkeypatch) -> None:
    config = make_config(tmp_path)
    device = make_device(config)
    sdk = tmp_path / "sdk"
    _write_boot_config(device.home_directory, sdk)

    copies: list[tuple[Path, Path]] = []
    real_copyfile = shutil.copyfile

    def counting_copyfile(src, dst, *args, **kwargs):
        copies.append((Path(src), Path(dst)))
        return real_copyfile(src, dst, *args, **kwargs)

    monkeypatch.setattr(system_image.shutil, "copyfile", counting_copyfile)

    first = prepare_system_image(device)
    (first.path).write_bytes(b"modified-by-install")
    second = prepare_system_image(device)

    assert first.copied_from == sdk / "system.img"
    assert second.copied_from is None
    assert second.path == device.home_directory / "system.img"
    assert len(copies) == 1
    assert second.path.read_bytes() == b"modified-by-install"


def test_nand_args_add_fixed_headroom_to_current_image_size(tmp_path: Path) -> None:
    image = tmp_path / "system.img"
    image.write_bytes(b"\0" * 1000)

    args = nand_qemu_args(image, headroom_bytes=50 * 1024 * 1024)

    assert args[:2] == ["-qemu", "-nand"]
    assert args[2] == (
        f"system,size=0x{1000 + 52428800:x},file={image.absolute()},pagesize=512,extrasize=0"
    )
