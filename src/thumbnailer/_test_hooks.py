"""Test hooks for thumbnailer - allows injecting test dependencies.

Hooks are module-level callables that production code calls directly. Tests
assign fake implementations before running the code under test and the
autouse fixture in ``tests/conftest.py`` restores the originals.

Usage in production code:
    from thumbnailer import _test_hooks
    proc = _test_hooks.subprocess_run(["exiftool", ...], capture_output=True, text=True)

Usage in tests:
    from thumbnailer import _test_hooks
    _test_hooks.get_env = lambda key: {"THUMBNAILER_WIDTH": "200"}.get(key)
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from collections.abc import Callable
from typing import Protocol

from PIL import Image, ImageOps


class SubprocessRunResult(Protocol):
    """Protocol for subprocess.run result."""

    returncode: int
    stdout: bytes | str | None
    stderr: bytes | str | None


class SubprocessRunProtocol(Protocol):
    """Protocol for subprocess.run function."""

    def __call__(
        self,
        args: list[str],
        *,
        capture_output: bool = False,
        check: bool = False,
        timeout: float | None = None,
        text: bool = False,
    ) -> SubprocessRunResult: ...


def _default_get_env(key: str) -> str | None:
    """Production implementation - reads from os.environ."""
    return os.getenv(key)


def _default_subprocess_run(
    args: list[str],
    *,
    capture_output: bool = False,
    check: bool = False,
    timeout: float | None = None,
    text: bool = False,
) -> SubprocessRunResult:
    """Production implementation - calls subprocess.run."""
    return subprocess.run(
        args, capture_output=capture_output, check=check, timeout=timeout, text=text
    )


def _default_which(name: str) -> str | None:
    """Production implementation - looks up an executable on PATH."""
    return shutil.which(name)


# Hook for environment variable access. Tests can override to provide fake values.
get_env: Callable[[str], str | None] = _default_get_env

# Hook for external decoder invocation. Tests can override to fake exiftool.
subprocess_run: SubprocessRunProtocol = _default_subprocess_run

# Hook for executable lookup. Tests can override to simulate a missing tool.
which: Callable[[str], str | None] = _default_which


class ExifTransposeProtocol(Protocol):
    """Protocol for ImageOps.exif_transpose."""

    def __call__(self, img: Image.Image) -> Image.Image: ...


def _default_exif_transpose(img: Image.Image) -> Image.Image:
    """Production implementation - returns an upright copy of the image."""
    return ImageOps.exif_transpose(img)


def _default_mkdtemp(prefix: str) -> str:
    """Production implementation - calls tempfile.mkdtemp."""
    return tempfile.mkdtemp(prefix=prefix)


# Hook for EXIF orientation. Tests can override to simulate malformed metadata.
exif_transpose: ExifTransposeProtocol = _default_exif_transpose

# Hook for scratch directories used by preprocessing stages.
mkdtemp: Callable[[str], str] = _default_mkdtemp
