from __future__ import annotations

import sys
from typing import Iterable, List, Optional, TextIO

USES_LIBRARY_TEMPLATE = '<uses-library android:name="{name}" android:required="true"/>'


def uses_library_lines(library_ids: Iterable[str]) -> List[str]:
    return [USES_LIBRARY_TEMPLATE.format(name=name) for name in library_ids]


class ProgressReporter:
    """User-facing console output: hints, echoed commands, final guidance."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def _write(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def hint(self, message: str) -> None:
        self._write()
        self._write(f"==> {message}")

    def command(self, command: str) -> None:
        self._write(f"# {command}")

    def guidance(self, library_ids: Iterable[str], *, restart_hint: str) -> None:
        self._write()
        self._write("You are done now!")
        self._write()
        self._write(restart_hint)
        self._write()
        self._write("Add the following library imports to your AndroidManifest.xml:")
        self._write()
        for line in uses_library_lines(library_ids):
            self._write(line)
