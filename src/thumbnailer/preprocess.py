"""Preprocessing stages for source encodings Pillow cannot decode directly.

A stage writes a decodable intermediate into a scratch directory owned by the
caller and the pipeline continues with that intermediate. Nothing is written
beside the source file; the caller removes the scratch directory.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from . import _test_hooks
from .errors import PreprocessingError
from .logging import get_logger


class Preprocessor(Protocol):
    """A pipeline stage that turns one source file into a decodable intermediate."""

    @property
    def name(self) -> str: ...

    def handles(self, path: Path) -> bool: ...

    def prepare(self, path: Path, workdir: Path) -> Path: ...


def _as_text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace").strip()
    return value.strip()


class ExiftoolPreprocessor:
    """Extract the embedded full-size JPEG from camera RAW files with exiftool.

    Runs ``exiftool -b -JpgFromRaw -w <workdir>/%f.jpg <file>``, which writes
    ``<workdir>/<stem>.jpg``. A sibling ``<stem>.jpg`` next to the source, such as
    the JPEG half of a RAW+JPEG pair, is never touched.
    """

    def __init__(
        self,
        *,
        extensions: Sequence[str] = (".cr3",),
        executable: str = "exiftool",
        timeout_seconds: float = 120.0,
    ) -> None:
        self._extensions = frozenset(e.lower() for e in extensions)
        self._executable = executable
        self._timeout = float(timeout_seconds)
        self._logger = get_logger(__name__)

    @property
    def name(self) -> str:
        return "exiftool"

    def handles(self, path: Path) -> bool:
        return path.suffix.lower() in self._extensions

    def prepare(self, path: Path, workdir: Path) -> Path:
        exe = _test_hooks.which(self._executable)
        if exe is None:
            raise PreprocessingError(
                f"cannot convert {path.name}: {self._executable} not found on PATH"
            )
        cmd = [exe, "-b", "-JpgFromRaw", "-w", f"{workdir}/%f.jpg", str(path)]
        self._logger.debug("Running %s", " ".join(cmd), extra={"path": str(path)})
        try:
            proc = _test_hooks.subprocess_run(
                cmd, capture_output=True, text=True, timeout=self._timeout
            )
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise PreprocessingError(f"error converting {path.name} to JPEG: {exc}") from exc
        if proc.returncode != 0:
            raise PreprocessingError(
                f"error converting {path.name} to JPEG: exit status {proc.returncode}, "
                f"{_as_text(proc.stderr)}"
            )
        intermediate = workdir / f"{path.stem}.jpg"
        if not intermediate.is_file():
            raise PreprocessingError(
                f"error converting {path.name} to JPEG: no embedded preview written "
                f"({_as_text(proc.stderr) or 'no output'})"
            )
        return intermediate


def select_preprocessor(path: Path, stages: Sequence[Preprocessor]) -> Preprocessor | None:
    """Return the first stage that handles ``path``, if any."""
    for stage in stages:
        if stage.handles(path):
            return stage
    return None


def default_preprocessors() -> tuple[Preprocessor, ...]:
    return (ExiftoolPreprocessor(),)


__all__ = [
    "ExiftoolPreprocessor",
    "Preprocessor",
    "default_preprocessors",
    "select_preprocessor",
]
