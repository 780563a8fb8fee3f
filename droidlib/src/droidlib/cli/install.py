from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, Optional, Sequence, TextIO

from droidlib.catalog.devices import DeviceCatalog
from droidlib.catalog.versions import VersionCatalog, natural_sorted
from droidlib.config import InstallerConfig, load_config
from droidlib.errors import (
    CommandFailedError,
    InstallCancelledError,
    InstallerError,
    InvalidInputError,
    format_possible_values,
)
from droidlib.install.pipeline import DEFAULT_STRATEGY, STRATEGIES, Installer, resolve_strategy
from droidlib.install.progress import ProgressReporter
from droidlib.runtime.android.controller import AndroidController
from droidlib.validation import build_request

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_INPUT = 2

DESCRIPTION = (
    "Installs runtime libraries (e.g. Scala) on an Android emulator or rooted device "
    "to reduce turnaround times when developing for Android."
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="droidlib-install", description=DESCRIPTION)
    parser.add_argument(
        "targets",
        nargs="*",
        metavar="[avd] version",
        help="AVD name (omitted for --strategy rooted) followed by the payload version.",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        default=os.environ.get("DROIDLIB_STRATEGY", DEFAULT_STRATEGY),
        choices=sorted(STRATEGIES),
        help=f"How the target device is acquired (default: {DEFAULT_STRATEGY}).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=os.environ.get("DROIDLIB_CONFIG"),
        help="Optional YAML/JSON installer config.",
    )
    parser.add_argument(
        "--payload_root",
        type=Path,
        default=os.environ.get("DROIDLIB_PAYLOAD_ROOT"),
        help="Directory holding <version>/lib and <version>/permissions (default: ./scala).",
    )
    parser.add_argument("--adb_path", type=str, default=os.environ.get("DROIDLIB_ADB_PATH"))
    parser.add_argument(
        "--emulator_path", type=str, default=os.environ.get("DROIDLIB_EMULATOR_PATH")
    )
    parser.add_argument("--android_path", type=str, default=os.environ.get("DROIDLIB_ANDROID_PATH"))
    parser.add_argument("--serial", type=str, default=os.environ.get("DROIDLIB_ANDROID_SERIAL"))
    parser.add_argument(
        "--wait_timeout",
        type=float,
        default=None,
        help="Give up waiting for the device after this many seconds (default: wait forever).",
    )
    parser.add_argument(
        "--list", action="store_true", help="List available devices and versions and exit."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def _describe(values_fn, *, out_of: str) -> str:
    try:
        return format_possible_values(natural_sorted(values_fn()))
    except (InstallerError, OSError) as e:
        return f"<unable to list {out_of}: {e}>"


def format_usage_help(config: InstallerConfig, *, strategy_name: str) -> str:
    versions = _describe(VersionCatalog(config.payload_root).list_versions, out_of="versions")
    lines = []
    if strategy_name == "rooted":
        lines += [
            "USAGE: droidlib-install --strategy rooted <version>",
            "",
            "Installs the libraries in the currently running rooted device.",
            "",
        ]
    else:
        devices = _describe(DeviceCatalog(config).list_devices, out_of="devices")
        lines += [
            f"USAGE: droidlib-install [--strategy {strategy_name}] <avd> <version>",
            "",
            "Installs the libraries in the specified emulator.",
            "",
            "<avd>        the name of the android virtual device to install the libs on",
            f"             possible values: {devices}",
        ]
    lines += [
        "<version>    the version to install",
        f"             possible values: {versions}",
    ]
    return "\n".join(lines)


def print_listing(config: InstallerConfig, out: TextIO) -> None:
    devices = DeviceCatalog(config).list_devices()
    versions = VersionCatalog(config.payload_root).list_versions()
    out.write("devices:\n")
    for name in natural_sorted(devices):
        out.write(f"  {name} ({devices[name].platform})\n")
    out.write("versions:\n")
    for version in natural_sorted(versions):
        out.write(f"  {version}\n")


def _split_targets(targets: Sequence[str], *, requires_device: bool) -> tuple[Optional[str], str]:
    expected = 2 if requires_device else 1
    if len(targets) != expected:
        raise InvalidInputError(
            f"expected {'<avd> <version>' if requires_device else '<version>'}, "
            f"got {len(targets)} argument(s)"
        )
    if requires_device:
        return targets[0], targets[1]
    return None, targets[0]


def _report_error(error: BaseException, config: InstallerConfig, strategy: str) -> None:
    print()
    print(f"ERROR: {error}")
    print()
    print(format_usage_help(config, strategy_name=strategy))


def run_install(
    config: InstallerConfig,
    *,
    strategy_name: str,
    targets: Iterable[str],
    wait_timeout: Optional[float] = None,
    reporter: Optional[ProgressReporter] = None,
) -> int:
    reporter = reporter or ProgressReporter()
    strategy = resolve_strategy(strategy_name)
    device_name, version = _split_targets(list(targets), requires_device=strategy.requires_device)

    request = build_request(
        version=version,
        version_catalog=VersionCatalog(config.payload_root),
        device_name=device_name,
        device_catalog=DeviceCatalog(config) if device_name is not None else None,
    )
    controller = AndroidController(
        adb_path=config.adb_path,
        emulator_path=config.emulator_path,
        serial=config.serial,
        echo=reporter.command,
    )
    installer = Installer(
        config=config,
        controller=controller,
        strategy=strategy,
        reporter=reporter,
        wait_timeout_s=wait_timeout,
    )
    report = installer.install(request)

    logger.info("installed %s via %s: %s", report.version, report.strategy, report.libraries)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    overrides = dict(
        payload_root=args.payload_root,
        adb_path=args.adb_path,
        emulator_path=args.emulator_path,
        android_path=args.android_path,
        serial=args.serial,
    )
    # command-line settings only, for usage help when the config file is unusable
    config = InstallerConfig.from_environment(**overrides)
    try:
        config = load_config(args.config, **overrides)
        if args.list:
            print_listing(config, sys.stdout)
            return EXIT_OK
        return run_install(
            config,
            strategy_name=args.strategy,
            targets=args.targets,
            wait_timeout=args.wait_timeout,
        )
    except InvalidInputError as e:
        _report_error(e, config, args.strategy)
        return EXIT_INVALID_INPUT
    except (CommandFailedError, InstallCancelledError) as e:
        _report_error(e, config, args.strategy)
        return EXIT_FAILED
    except (InstallerError, OSError) as e:
        logger.debug("installer aborted", exc_info=True)
        _report_error(e, config, args.strategy)
        return EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
