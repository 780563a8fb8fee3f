"""adb/emulator command execution.

Every external command the installer runs goes through this module so that:
  * each command is echoed to the user before it runs
  * a non-zero exit code is the one and only failure signal

Notes
-----
* No command has a timeout. ``wait_for_device`` may block forever if the
  device never comes up; callers that want a bound pass a cancel event.
* The emulator is the only process that runs concurrently with the installer.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from droidlib.errors import CommandFailedError, InstallCancelledError

logger = logging.getLogger(__name__)

CommandEcho = Callable[[str], None]


@dataclass(frozen=True)
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str

    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return (self.stdout or "") + (self.stderr or "")


def format_command(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(a)) for a in argv)


def to_transport_path(path: str | Path) -> str:
    """Absolute path string for a local filesystem entry, as handed to adb."""

    return str(Path(path).absolute())


def run_command(
    argv: Sequence[str],
    *,
    check: bool = True,
    echo: Optional[CommandEcho] = None,
) -> CommandResult:
    """Run a local command and capture its output.

    Raises ``CommandFailedError`` on a non-zero exit code when ``check`` is set.
    """

    args = [str(a) for a in argv]
    command = format_command(args)
    if echo is not None:
        echo(command)
    logger.info("CMD %s", command)

    proc = subprocess.run(args, capture_output=True, text=True)
    result = CommandResult(
        args=args,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
    if result.stdout:
        logger.debug("STDOUT %s", result.stdout.strip())
    if result.stderr:
        logger.debug("STDERR %s", result.stderr.strip())

    if check and not result.ok():
        raise CommandFailedError(command, result.returncode, result.output)
    return result


def elevate(command: str) -> str:
    """Wrap a device shell command in a superuser shell."""

    return " ".join(shlex.quote(p) for p in ("su", "-c", command))


class AndroidController:
    """Thin wrapper around adb and the emulator launcher."""

    def __init__(
        self,
        *,
        adb_path: str = "adb",
        emulator_path: str = "emulator",
        serial: Optional[str] = None,
        echo: Optional[CommandEcho] = None,
        poll_interval_s: float = 1.0,
    ) -> None:
        self._adb_path = adb_path
        self._emulator_path = emulator_path
        self._serial = serial
        self._echo = echo
        self._poll_interval_s = poll_interval_s

    @property
    def serial(self) -> Optional[str]:
        return self._serial

    def _base_cmd(self) -> list[str]:
        cmd = [self._adb_path]
        if self._serial:
            cmd += ["-s", self._serial]
        return cmd

    def run(self, argv: Sequence[str], *, check: bool = True) -> CommandResult:
        return run_command(argv, check=check, echo=self._echo)

    def adb(self, *args: str, check: bool = True) -> CommandResult:
        return self.run(self._base_cmd() + list(args), check=check)

    def adb_shell(self, command: str, *, elevated: bool = False, check: bool = True) -> CommandResult:
        if elevated:
            command = elevate(command)
        return self.adb("shell", command, check=check)

    def push_file(self, src: str | Path, dst: str, *, check: bool = True) -> CommandResult:
        return self.adb("push", to_transport_path(src), str(dst), check=check)

    def pull_file(self, src: str, dst: str | Path, *, check: bool = True) -> CommandResult:
        dst_path = Path(dst)
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        return self.adb("pull", str(src), to_transport_path(dst_path), check=check)

    def wait_for_device(self, *, cancel: Optional[threading.Event] = None) -> CommandResult:
        """Block until the device answers on adb.

        Without ``cancel`` this is a plain blocking ``adb wait-for-device`` with
        no timeout. With ``cancel`` the wait is polled and abandoned once the
        event is set.
        """

        if cancel is None:
            return self.adb("wait-for-device")

        args = self._base_cmd() + ["wait-for-device"]
        command = format_command(args)
        if self._echo is not None:
            self._echo(command)
        logger.info("CMD %s (cancellable)", command)

        proc = subprocess.Popen(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        while proc.poll() is None:
            if cancel.wait(self._poll_interval_s):
                proc.kill()
                proc.wait()
                raise InstallCancelledError(f"Cancelled while waiting for device: {command}")
        stdout, stderr = proc.communicate()
        result = CommandResult(
            args=args,
            returncode=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
        )
        if not result.ok():
            raise CommandFailedError(command, result.returncode, result.output)
        return result

    def start_emulator(
        self,
        avd_name: str,
        *,
        partition_size_mb: int,
        extra_args: Sequence[str] = (),
    ) -> subprocess.Popen:
        """Launch the emulator and return immediately with its process handle."""

        args = [
            self._emulator_path,
            "-avd",
            avd_name,
            "-partition-size",
            str(int(partition_size_mb)),
            "-no-snapshot",
            *[str(a) for a in extra_args],
        ]
        command = format_command(args)
        if self._echo is not None:
            self._echo(command)
        logger.info("SPAWN %s", command)
        return subprocess.Popen(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

    def stop_emulator(self, process: Optional[subprocess.Popen]) -> None:
        """Best-effort termination; the emulator may not shut down cleanly."""

        if process is None:
            return
        if process.poll() is not None:
            logger.info("emulator already exited (rc=%s)", process.returncode)
            return
        try:
            process.terminate()
        except OSError as e:
            logger.warning("could not terminate emulator pid=%s: %s", process.pid, e)


def shell_prefix(*, is_windows: bool) -> list[str]:
    """Prefix needed to run SDK wrapper scripts through the platform shell."""

    return ["cmd", "/c"] if is_windows else []


def default_is_windows() -> bool:
    return os.name == "nt"
