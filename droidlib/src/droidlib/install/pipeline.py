"""Install strategies and the installer that runs them.

A strategy is picked once per run and turns into an ordered list of named
stages:

* ``rebuild``: boot the AVD, install, then rebuild the ``/system`` and
  ``/data`` images on the device and copy them back into the AVD directory.
* ``reuse``: boot the AVD directly on its own copy of ``system.img`` so the
  pushed files land in the backing image; no rebuild needed.
* ``rooted``: a device that is already running and rooted; every shell
  command goes through ``su``.

The first failing command aborts the run. Nothing is rolled back and no
later stage runs; an emulator started by the run is left to the user.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Literal, Optional

from droidlib.catalog.versions import PayloadLayout
from droidlib.config import InstallerConfig
from droidlib.errors import InvalidArgumentError, InvalidInputError
from droidlib.install import stages
from droidlib.install.progress import ProgressReporter
from droidlib.install.stages import InstallContext
from droidlib.install.system_image import (
    device_system_image,
    device_userdata_image,
    nand_qemu_args,
    prepare_system_image,
)
from droidlib.runtime.android.controller import AndroidController
from droidlib.validation import InstallationRequest

logger = logging.getLogger(__name__)

StrategyName = Literal["rebuild", "reuse", "rooted"]


@dataclass(frozen=True)
class Stage:
    name: str
    run: Callable[[InstallContext], None]


@dataclass(frozen=True)
class InstallReport:
    strategy: str
    version: str
    device_name: Optional[str]
    stages: List[str]
    libraries: List[str]


# --------------------------------- Emulator stages ---------------------------------


def _boot_emulator(ctx: InstallContext, extra_args: List[str]) -> None:
    ctx.reporter.hint("starting emulator ...")
    ctx.emulator = ctx.controller.start_emulator(
        ctx.device.name,
        partition_size_mb=ctx.config.partition_size_mb,
        extra_args=extra_args,
    )


def boot_emulator(ctx: InstallContext) -> None:
    _boot_emulator(ctx, [])


def boot_emulator_on_image(ctx: InstallContext) -> None:
    image = ctx.system_image or device_system_image(ctx.device)
    _boot_emulator(
        ctx, nand_qemu_args(image, headroom_bytes=ctx.config.image_headroom_bytes)
    )


def wait_for_device(ctx: InstallContext) -> None:
    ctx.reporter.hint("waiting for emulator ...")
    if ctx.wait_timeout_s is None:
        ctx.controller.wait_for_device(cancel=ctx.cancel)
        return

    # The timeout covers the wait alone, not the image copy or boot before it.
    cancel = ctx.cancel or threading.Event()
    timer = threading.Timer(ctx.wait_timeout_s, cancel.set)
    timer.daemon = True
    timer.start()
    try:
        ctx.controller.wait_for_device(cancel=cancel)
    finally:
        timer.cancel()


def stop_emulator(ctx: InstallContext) -> None:
    ctx.controller.stop_emulator(ctx.emulator)
    ctx.emulator = None


def prepare_image(ctx: InstallContext) -> None:
    prepared = prepare_system_image(ctx.device)
    if prepared.copied_from is not None:
        ctx.reporter.hint(f"copied system image from {prepared.copied_from} to {prepared.path}")
    else:
        ctx.reporter.hint(f"using existing image file at {prepared.path}")
    ctx.system_image = prepared.path


@dataclass(frozen=True)
class RebuiltImage:
    partition: str
    remote_path: str
    avd_path: Path


def rebuilt_images(ctx: InstallContext) -> List[RebuiltImage]:
    """Partitions captured from the device, in build order."""

    return [
        RebuiltImage("/system", ctx.config.remote_image_path, device_system_image(ctx.device)),
        RebuiltImage(
            "/data", ctx.config.remote_userdata_image_path, device_userdata_image(ctx.device)
        ),
    ]


def build_system_image(ctx: InstallContext) -> None:
    tool = ctx.config.image_tool_path(ctx.device.platform.value)
    for image in rebuilt_images(ctx):
        stages.shell(
            ctx,
            f"{tool} {image.partition} {shlex.quote(image.remote_path)}",
            hint=f"building {image.partition} image on the device",
        )


def pull_system_image(ctx: InstallContext) -> None:
    ctx.reporter.hint(
        "pulling system and data images from the device (this will take several minutes)"
    )
    for image in rebuilt_images(ctx):
        local = ctx.work_dir / f"{ctx.device.name}-{image.avd_path.name}"
        ctx.controller.pull_file(image.remote_path, local)
        ctx.pulled_images[image.avd_path] = local


def remove_remote_image(ctx: InstallContext) -> None:
    for image in rebuilt_images(ctx):
        stages.shell(
            ctx,
            f"rm {shlex.quote(image.remote_path)}",
            hint=f"removing temporary {image.partition} image from the device",
        )


def install_system_image(ctx: InstallContext) -> None:
    if not ctx.pulled_images:
        raise RuntimeError("install_system_image requires pulled device images")
    for target, local in ctx.pulled_images.items():
        ctx.reporter.hint(f"copying {local.name} to {target}")
        shutil.copyfile(local, target)
        local.unlink()
    ctx.pulled_images.clear()
    ctx.system_image = device_system_image(ctx.device)


# ----------------------------------- Strategies ------------------------------------


class InstallStrategy:
    name: str = ""
    requires_device: bool = True
    elevated: bool = False
    settle_after_push: bool = False
    restart_target: str = "emulator"

    def shared_stages(self) -> List[Stage]:
        elevated = self.elevated
        return [
            Stage("remount_rw", lambda ctx: stages.remount_system(ctx, mode="rw", elevated=elevated)),
            Stage(
                "recreate_library_dir",
                lambda ctx: stages.recreate_library_dir(ctx, elevated=elevated),
            ),
            Stage("push_libraries", stages.push_libraries),
            Stage(
                "push_permissions",
                lambda ctx: stages.push_permissions(ctx, elevated=elevated),
            ),
        ]

    def guidance_stage(self) -> Stage:
        target = self.restart_target
        return Stage("print_guidance", lambda ctx: stages.print_guidance(ctx, target=target))

    def build_stages(self) -> List[Stage]:
        raise NotImplementedError


class ImageRebuildStrategy(InstallStrategy):
    name = "rebuild"

    def build_stages(self) -> List[Stage]:
        return [
            Stage("boot_emulator", boot_emulator),
            Stage("wait_for_device", wait_for_device),
            *self.shared_stages(),
            Stage("build_system_image", build_system_image),
            Stage("pull_system_image", pull_system_image),
            Stage("remove_remote_image", remove_remote_image),
            Stage("install_system_image", install_system_image),
            self.guidance_stage(),
            Stage("stop_emulator", stop_emulator),
        ]


class ImageReuseStrategy(InstallStrategy):
    name = "reuse"
    settle_after_push = True

    def build_stages(self) -> List[Stage]:
        return [
            Stage("prepare_system_image", prepare_image),
            Stage("boot_emulator", boot_emulator_on_image),
            Stage("wait_for_device", wait_for_device),
            *self.shared_stages(),
            self.guidance_stage(),
            Stage("stop_emulator", stop_emulator),
        ]


class RootedDeviceStrategy(InstallStrategy):
    name = "rooted"
    requires_device = False
    elevated = True
    restart_target = "device"

    def build_stages(self) -> List[Stage]:
        return [
            *self.shared_stages(),
            Stage("remount_ro", lambda ctx: stages.remount_system(ctx, mode="ro", elevated=True)),
            self.guidance_stage(),
        ]


STRATEGIES: Dict[str, type[InstallStrategy]] = {
    ImageRebuildStrategy.name: ImageRebuildStrategy,
    ImageReuseStrategy.name: ImageReuseStrategy,
    RootedDeviceStrategy.name: RootedDeviceStrategy,
}

DEFAULT_STRATEGY: StrategyName = "reuse"


def resolve_strategy(name: Optional[str]) -> InstallStrategy:
    normalized = (name or DEFAULT_STRATEGY).strip().lower()
    cls = STRATEGIES.get(normalized)
    if cls is None:
        raise InvalidArgumentError("strategy", str(name), list(STRATEGIES))
    return cls()


# ------------------------------------ Installer ------------------------------------


class Installer:
    def __init__(
        self,
        *,
        config: InstallerConfig,
        controller: AndroidController,
        strategy: InstallStrategy,
        reporter: Optional[ProgressReporter] = None,
        sleep: Callable[[float], None] = time.sleep,
        work_dir: Optional[Path] = None,
        wait_timeout_s: Optional[float] = None,
    ) -> None:
        self._config = config
        self._controller = controller
        self._strategy = strategy
        self._reporter = reporter or ProgressReporter()
        self._sleep = sleep
        self._work_dir = work_dir
        self._wait_timeout_s = wait_timeout_s

    @property
    def strategy(self) -> InstallStrategy:
        return self._strategy

    def _context(
        self,
        request: InstallationRequest,
        layout: PayloadLayout,
        cancel: Optional[threading.Event],
    ) -> InstallContext:
        return InstallContext(
            config=self._config,
            controller=self._controller,
            reporter=self._reporter,
            request=request,
            layout=layout,
            work_dir=self._work_dir or Path(tempfile.gettempdir()),
            cancel=cancel,
            wait_timeout_s=self._wait_timeout_s,
            sleep=self._sleep,
            settle_delay_s=self._config.settle_delay_s if self._strategy.settle_after_push else 0.0,
        )

    def install(
        self, request: InstallationRequest, *, cancel: Optional[threading.Event] = None
    ) -> InstallReport:
        if self._strategy.requires_device and request.device is None:
            raise InvalidInputError(
                f"strategy '{self._strategy.name}' needs an emulator device (avd)"
            )
        layout = PayloadLayout(payload_root=self._config.payload_root, version=request.version)
        layout.require_lib_dir()

        runtime = self._config.runtime_name
        if request.device is not None:
            print_target = f"{request.device.name} ({request.device.platform})"
        else:
            print_target = "the currently running device"
        self._reporter.hint(f"Installing {runtime} {request.version} for {print_target}")

        ctx = self._context(request, layout, cancel)
        ran: List[str] = []
        for stage in self._strategy.build_stages():
            logger.info("Running stage %s", stage.name)
            stage.run(ctx)
            ran.append(stage.name)

        return InstallReport(
            strategy=self._strategy.name,
            version=request.version,
            device_name=request.device.name if request.device is not None else None,
            stages=ran,
            libraries=stages.pushed_library_ids(ctx),
        )
