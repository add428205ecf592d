"""Shared test fixtures for thumbnailer tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from PIL import Image

from thumbnailer import _test_hooks


@pytest.fixture(autouse=True)
def _restore_hooks() -> Generator[None, None, None]:
    """Restore all hooks after each test."""
    original_get_env = _test_hooks.get_env
    original_subprocess_run = _test_hooks.subprocess_run
    original_which = _test_hooks.which
    original_exif_transpose = _test_hooks.exif_transpose
    original_mkdtemp = _test_hooks.mkdtemp
    yield
    _test_hooks.get_env = original_get_env
    _test_hooks.subprocess_run = original_subprocess_run
    _test_hooks.which = original_which
    _test_hooks.exif_transpose = original_exif_transpose
    _test_hooks.mkdtemp = original_mkdtemp


@pytest.fixture(autouse=True)
def _empty_test_env() -> None:
    """Keep THUMBNAILER_* variables from the real environment out of tests."""

    def _no_env(key: str) -> str | None:
        return None

    _test_hooks.get_env = _no_env


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Generator[None, None, None]:
    """Undo handlers installed by setup_logging."""
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in original_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in original_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(original_level)


def write_image(
    path: Path,
    size: tuple[int, int] = (400, 300),
    *,
    mode: str = "RGB",
    fmt: str = "PNG",
) -> Path:
    """Write a solid-colour test image and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    color: tuple[int, ...] = (200, 40, 40, 128) if mode == "RGBA" else (200, 40, 40)
    Image.new(mode, size, color).save(path, fmt)
    return path
