"""Validation of user-supplied device names and payload versions.

Accepted values are always derived from the catalogs at call time, and a
rejection lists every accepted value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from droidlib.catalog.devices import Device
from droidlib.catalog.versions import natural_sorted
from droidlib.errors import InvalidArgumentError

DEVICE_ARGUMENT = "avd"
VERSION_ARGUMENT = "version"


@dataclass(frozen=True)
class InstallationRequest:
    version: str
    device: Optional[Device] = None


def validate_argument(name: str, value: str, possible_values: Iterable[str]) -> str:
    possible = set(possible_values)
    if value in possible:
        return value
    raise InvalidArgumentError(name, value, natural_sorted(possible))


def validate_version(version: str, available_versions: Iterable[str]) -> str:
    return validate_argument(VERSION_ARGUMENT, version, available_versions)


def validate_device(device_name: str, devices_by_name: Mapping[str, Device]) -> Device:
    device = devices_by_name.get(device_name)
    if device is None:
        raise InvalidArgumentError(DEVICE_ARGUMENT, device_name, natural_sorted(devices_by_name))
    return device


def build_request(
    *,
    version: str,
    version_catalog,
    device_name: Optional[str] = None,
    device_catalog=None,
) -> InstallationRequest:
    """Validate both inputs, then build the request.

    ``device_name`` is omitted for targets that are already running (no AVD).
    Catalogs are queried before anything is constructed so a request is never
    half-validated.
    """

    device: Optional[Device] = None
    if device_name is not None:
        if device_catalog is None:
            raise ValueError("device_catalog is required when device_name is given")
        device = validate_device(device_name, device_catalog.list_devices())
    valid_version = validate_version(version, version_catalog.list_versions())
    return InstallationRequest(version=valid_version, device=device)
