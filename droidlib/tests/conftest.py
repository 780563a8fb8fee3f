from __future__ import annotations

import sys
from pathlib import Path


def _ensure_src_on_path() -> None:
    project_root = Path(__file__).resolve().parents[1]
    src = project_root / "src"
    src_str = str(src)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)

    # Shared fakes live next to the install tests.
    install_tests_root = Path(__file__).resolve().parent / "unit" / "install"
    install_tests_root_str = str(install_tests_root)
    if install_tests_root.is_dir() and install_tests_root_str not in sys.path:
        sys.path.insert(0, install_tests_root_str)


_ensure_src_on_path()
