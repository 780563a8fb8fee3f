"""Installer configuration.

Everything the installer would otherwise read ad hoc from the process
(home directory, OS, tool locations) lives on ``InstallerConfig`` and is
passed explicitly to the catalogs and the pipeline.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from jsonschema import Draft202012Validator

from droidlib.errors import ConfigError
from droidlib.runtime.android.controller import default_is_windows

SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "installer_config.schema.json"

MIB = 1024 * 1024

_PATH_FIELDS = ("user_home", "avd_home", "payload_root")


@dataclass(frozen=True)
class InstallerConfig:
    user_home: Path
    payload_root: Path = Path("scala")
    runtime_name: str = "scala"
    avd_home: Optional[Path] = None
    adb_path: str = "adb"
    emulator_path: str = "emulator"
    android_path: str = "android"
    serial: Optional[str] = None
    is_windows: bool = False
    partition_size_mb: int = 1024
    # room left in the nand geometry for the payload about to be pushed
    image_headroom_bytes: int = 50 * MIB
    settle_delay_s: float = 5.0
    remote_framework_dir: str = "/system/framework"
    remote_permissions_dir: str = "/system/etc/permissions"
    image_tool_dir: str = "/data/local/tmp"
    remote_image_path: str = "/sdcard/system.img"
    remote_userdata_image_path: str = "/sdcard/userdata.img"

    @classmethod
    def from_environment(cls, **overrides: Any) -> "InstallerConfig":
        """Build a config from the current user's home directory and OS."""

        base: Dict[str, Any] = {"user_home": Path.home(), "is_windows": default_is_windows()}
        base.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_mapping(base)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "InstallerConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        kwargs = dict(data)
        for key in _PATH_FIELDS:
            if kwargs.get(key) is not None:
                kwargs[key] = Path(kwargs[key]).expanduser()
        if "user_home" not in kwargs:
            kwargs["user_home"] = Path.home()
        return cls(**kwargs)

    def with_overrides(self, **overrides: Any) -> "InstallerConfig":
        changes = {k: v for k, v in overrides.items() if v is not None}
        for key in _PATH_FIELDS:
            if key in changes:
                changes[key] = Path(changes[key]).expanduser()
        return replace(self, **changes)

    @property
    def resolved_avd_home(self) -> Path:
        if self.avd_home is not None:
            return self.avd_home
        return self.user_home / ".android" / "avd"

    def remote_library_dir(self, version: str) -> str:
        return f"{self.remote_framework_dir.rstrip('/')}/{self.runtime_name}/{version}/"

    def image_tool_path(self, platform_name: str) -> str:
        return f"{self.image_tool_dir.rstrip('/')}/mkfs.yaffs2.{platform_name}"


def load_schema(schema_path: Path = SCHEMA_PATH) -> Dict[str, Any]:
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    if not isinstance(schema, dict):
        raise ConfigError(f"Schema must be an object: {schema_path}")
    return schema


def validate_config_data(data: Dict[str, Any], *, where: str) -> None:
    validator = Draft202012Validator(load_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        msgs = []
        for e in errors:
            loc = "/".join(str(p) for p in e.path)
            msgs.append(f"- {where}:{loc}: {e.message}")
        raise ConfigError("Invalid installer config:\n" + "\n".join(msgs))


def load_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix not in {".yaml", ".yml", ".json"}:
        raise ConfigError(f"Unsupported config file extension: {path}")
    try:
        data = json.loads(text) if suffix == ".json" else yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level config must be a mapping: {path}")
    validate_config_data(data, where=str(path))
    return data


def load_config(path: Optional[Path] = None, **overrides: Any) -> InstallerConfig:
    """Environment defaults, then the config file, then explicit overrides."""

    data: Dict[str, Any] = {}
    if path is not None:
        data.update(load_config_file(path))
    data.update({k: v for k, v in overrides.items() if v is not None})
    return InstallerConfig.from_environment(**data)
