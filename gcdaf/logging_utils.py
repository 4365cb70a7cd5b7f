"""Mirroring of run diagnostics into a per-command log file."""
from __future__ import annotations

import io
import re
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, TextIO

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def resolve_log_path(name: str, directory: str | Path) -> Path:
    """``<directory>/<name>.log`` with ``name`` reduced to a safe file name."""
    stem = _UNSAFE_NAME.sub("_", str(name)).strip("._-")[:128] or "run"
    return Path(directory) / f"{stem}.log"


class _StderrMirror(io.TextIOBase):
    """Write-through copy of a text stream into an open log handle."""

    def __init__(self, stream: TextIO, log: TextIO) -> None:
        self._stream = stream
        self._log = log

    def write(self, text: str) -> int:  # type: ignore[override]
        self._log.write(text)
        return self._stream.write(text)

    def flush(self) -> None:  # type: ignore[override]
        self._stream.flush()
        self._log.flush()


@contextmanager
def run_logging(name: str, directory: str | Path) -> Iterator[Path]:
    """Copy everything written to stderr into ``<directory>/<name>.log``.

    The log is truncated on entry.  Standard output is left alone because it
    carries the results.
    """
    path = resolve_log_path(name, directory)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        previous_stderr = sys.stderr
        sys.stderr = _StderrMirror(previous_stderr, handle)
        try:
            yield path
        finally:
            sys.stderr = previous_stderr
