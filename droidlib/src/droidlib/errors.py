"""Error kinds raised by the installer.

Two families matter to callers:

* ``InvalidInputError``: the user supplied something that failed validation
  (device name, payload version, device spec text, config file).
* ``CommandFailedError``: an external command exited with a non-zero code.

Neither is recovered from locally; both unwind the whole run.
"""

from __future__ import annotations

from typing import Iterable, Optional


class InstallerError(RuntimeError):
    """Base class for every error the installer raises on purpose."""


class InvalidInputError(InstallerError):
    pass


class ConfigError(InvalidInputError):
    pass


class DeviceSpecError(InvalidInputError):
    """A device descriptor block could not be parsed or classified."""

    def __init__(self, message: str, *, spec: str, device_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.spec = spec
        self.device_name = device_name


class InvalidArgumentError(InvalidInputError):
    """A user-supplied value is not one of the values discovered at runtime."""

    def __init__(self, name: str, value: str, possible_values: Iterable[str]) -> None:
        self.name = name
        self.value = value
        self.possible_values = list(possible_values)
        super().__init__(
            f"{name}: invalid value '{value}'. "
            f"Possible values are: {format_possible_values(self.possible_values)}"
        )


class CommandFailedError(InstallerError):
    """An external command returned a non-zero exit code."""

    def __init__(self, command: str, exit_code: int, output: str = "") -> None:
        super().__init__(f"Command '{command}' failed with exit code {exit_code}")
        self.command = command
        self.exit_code = exit_code
        self.output = output


class InstallCancelledError(InstallerError):
    pass


def format_possible_values(values: Iterable[str]) -> str:
    return ", ".join(values)
