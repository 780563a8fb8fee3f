from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from droidlib.config import InstallerConfig, load_config, load_config_file
from droidlib.errors import ConfigError


def test_avd_home_defaults_under_user_home(tmp_path: Path) -> None:
    config = InstallerConfig(user_home=tmp_path)
    assert config.resolved_avd_home == tmp_path / ".android" / "avd"

    custom = config.with_overrides(avd_home=str(tmp_path / "avds"))
    assert custom.resolved_avd_home == tmp_path / "avds"


def test_remote_paths_follow_runtime_and_version(tmp_path: Path) -> None:
    config = InstallerConfig(user_home=tmp_path)
    assert config.remote_library_dir("2.10.1") == "/system/framework/scala/2.10.1/"
    assert config.image_tool_path("arm") == "/data/local/tmp/mkfs.yaffs2.arm"

    kotlin = config.with_overrides(runtime_name="kotlin")
    assert kotlin.remote_library_dir("1.9.0") == "/system/framework/kotlin/1.9.0/"


def test_load_yaml_config_applies_overrides_last(tmp_path: Path) -> None:
    path = tmp_path / "droidlib.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "user_home": str(tmp_path / "home"),
                "payload_root": str(tmp_path / "payloads"),
                "adb_path": "/sdk/platform-tools/adb",
                "settle_delay_s": 2.5,
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path, adb_path="/opt/adb", serial=None)

    assert config.user_home == tmp_path / "home"
    assert config.payload_root == tmp_path / "payloads"
    assert config.adb_path == "/opt/adb"
    assert config.settle_delay_s == 2.5
    assert config.serial is None


def test_json_config_is_schema_validated(tmp_path: Path) -> None:
    path = tmp_path / "droidlib.json"
    path.write_text(
        json.dumps({"partition_size_mb": 0, "remote_permissions_dir": "system/etc", "bogus": 1}),
        encoding="utf-8",
    )

    with pytest.raises(ConfigError) as excinfo:
        load_config_file(path)
    msg = str(excinfo.value)
    assert "partition_size_mb" in msg
    assert "remote_permissions_dir" in msg
    assert "bogus" in msg


def test_empty_yaml_config_is_allowed(tmp_path: Path) -> None:
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")
    assert load_config_file(path) == {}


def test_missing_or_unsupported_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config_file(tmp_path / "missing.yaml")
    bad = tmp_path / "config.toml"
    bad.write_text("x = 1\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config_file(bad)


def test_from_mapping_rejects_unknown_keys(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        InstallerConfig.from_mapping({"user_home": str(tmp_path), "colour": "blue"})
