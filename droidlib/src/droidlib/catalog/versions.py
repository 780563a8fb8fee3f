"""Payload versions available on local storage.

Layout::

    <payload-root>/<version>/lib/*           library files pushed to the device
    <payload-root>/<version>/permissions/*   permission descriptors
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Set

from droidlib.errors import InvalidInputError

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"(\d+)")


def natural_key(value: str) -> tuple:
    """Sort key that orders ``2.9.2`` before ``2.10.1``."""

    return tuple(int(p) if p.isdigit() else p for p in _DIGITS_RE.split(value))


def natural_sorted(values: Iterable[str]) -> List[str]:
    return sorted(values, key=natural_key)


class VersionCatalog:
    def __init__(self, payload_root: Path) -> None:
        self._payload_root = Path(payload_root)

    @property
    def payload_root(self) -> Path:
        return self._payload_root

    def list_versions(self) -> Set[str]:
        if not self._payload_root.is_dir():
            logger.warning("payload root does not exist: %s", self._payload_root)
            return set()
        return {p.name for p in self._payload_root.iterdir() if p.is_dir()}

    def layout(self, version: str) -> "PayloadLayout":
        return PayloadLayout(payload_root=self._payload_root, version=version)


@dataclass(frozen=True)
class PayloadLayout:
    payload_root: Path
    version: str

    @property
    def version_dir(self) -> Path:
        return self.payload_root / self.version

    @property
    def lib_dir(self) -> Path:
        return self.version_dir / "lib"

    @property
    def permissions_dir(self) -> Path:
        return self.version_dir / "permissions"

    def require_lib_dir(self) -> None:
        if not self.lib_dir.is_dir():
            raise InvalidInputError(
                f"version '{self.version}' has no library directory: {self.lib_dir}"
            )

    def library_files(self) -> List[Path]:
        self.require_lib_dir()
        return sorted(p for p in self.lib_dir.iterdir() if not p.is_dir())

    def permission_files(self) -> List[Path]:
        if not self.permissions_dir.is_dir():
            return []
        return sorted(p for p in self.permissions_dir.iterdir() if p.is_file())


def library_identifier(permission_file: Path) -> str:
    return Path(permission_file).stem
