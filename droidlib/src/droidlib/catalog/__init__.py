"""Catalogs of installable targets: AVDs and payload versions."""

from __future__ import annotations

from droidlib.catalog.devices import Device, DeviceCatalog, Platform, parse_device_spec
from droidlib.catalog.versions import PayloadLayout, VersionCatalog

__all__ = [
    "Device",
    "DeviceCatalog",
    "PayloadLayout",
    "Platform",
    "VersionCatalog",
    "parse_device_spec",
]
