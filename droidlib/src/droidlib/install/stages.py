"""Pipeline stages shared by every install strategy.

Each stage takes the run context plus an explicit ``elevated`` flag; elevated
stages run their shell commands through a superuser shell instead of relying
on the adb daemon already having write access.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from droidlib.catalog.devices import Device
from droidlib.catalog.versions import PayloadLayout, library_identifier
from droidlib.config import InstallerConfig
from droidlib.errors import InvalidInputError
from droidlib.install.progress import ProgressReporter
from droidlib.runtime.android.controller import AndroidController, CommandResult
from droidlib.validation import InstallationRequest

logger = logging.getLogger(__name__)


@dataclass
class InstallContext:
    config: InstallerConfig
    controller: AndroidController
    reporter: ProgressReporter
    request: InstallationRequest
    layout: PayloadLayout
    work_dir: Path
    cancel: Optional[threading.Event] = None
    sleep: Callable[[float], None] = time.sleep
    settle_delay_s: float = 0.0
    emulator: Optional[subprocess.Popen] = None
    wait_timeout_s: Optional[float] = None
    system_image: Optional[Path] = None
    # AVD image file -> local copy pulled from the device
    pulled_images: Dict[Path, Path] = field(default_factory=dict)
    pushed_permissions: List[Path] = field(default_factory=list)

    @property
    def device(self) -> Device:
        if self.request.device is None:
            raise InvalidInputError("This install strategy needs an emulator device (avd)")
        return self.request.device

    @property
    def library_dir(self) -> str:
        return self.config.remote_library_dir(self.request.version)

    @property
    def permissions_dir(self) -> str:
        return self.config.remote_permissions_dir.rstrip("/") + "/"


def shell(
    ctx: InstallContext, command: str, *, hint: Optional[str] = None, elevated: bool = False
) -> CommandResult:
    if hint:
        ctx.reporter.hint(hint)
    return ctx.controller.adb_shell(command, elevated=elevated)


def push_file(ctx: InstallContext, src: Path, dst: str) -> CommandResult:
    res = ctx.controller.push_file(src, dst)
    if ctx.settle_delay_s > 0:
        # The backing image's size is not a reliable write-back signal; wait instead.
        logger.debug("settling %.1fs after push of %s", ctx.settle_delay_s, src.name)
        ctx.sleep(ctx.settle_delay_s)
    return res


def remount_system(ctx: InstallContext, *, mode: str, elevated: bool = False) -> None:
    if mode not in {"rw", "ro"}:
        raise ValueError(f"mount mode must be 'rw' or 'ro', got {mode!r}")
    hint = (
        "making system partition writable" if mode == "rw" else "making system partition readable"
    )
    shell(ctx, f"mount -o remount,{mode} /system", hint=hint, elevated=elevated)


def recreate_library_dir(ctx: InstallContext, *, elevated: bool = False) -> None:
    runtime = ctx.config.runtime_name
    target = shlex.quote(ctx.library_dir)
    shell(ctx, f"rm -r {target}", hint=f"removing existing {runtime} library", elevated=elevated)
    shell(ctx, f"mkdir -p {target}", hint=f"creating {runtime} library directory", elevated=elevated)


def push_libraries(ctx: InstallContext) -> None:
    ctx.reporter.hint(f"pushing {ctx.config.runtime_name} {ctx.request.version} library")
    for src in ctx.layout.library_files():
        push_file(ctx, src, ctx.library_dir)


def push_permissions(ctx: InstallContext, *, elevated: bool = False) -> None:
    target = ctx.permissions_dir
    ctx.reporter.hint("creating permission files")
    if elevated:
        shell(
            ctx,
            f"chmod 777 {shlex.quote(target.rstrip('/'))}",
            hint=f"allowing write access to {target}",
            elevated=True,
        )
    for src in ctx.layout.permission_files():
        push_file(ctx, src, target)
        ctx.pushed_permissions.append(src)
    if elevated:
        shell(
            ctx,
            f"chmod 755 {shlex.quote(target.rstrip('/'))}",
            hint=f"revoking write access to {target}",
            elevated=True,
        )


def pushed_library_ids(ctx: InstallContext) -> List[str]:
    return [library_identifier(p) for p in ctx.pushed_permissions]


def print_guidance(ctx: InstallContext, *, target: str = "emulator") -> None:
    ctx.reporter.guidance(
        pushed_library_ids(ctx),
        restart_hint=(
            f"Restart your {target} and the {ctx.config.runtime_name} libraries will be available."
        ),
    )
