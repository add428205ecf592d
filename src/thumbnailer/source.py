from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

from .errors import SetupError, ThumbnailerErrorCode
from .types import Job, TransformOptions


def _raise_walk_error(exc: OSError) -> None:
    raise SetupError(
        ThumbnailerErrorCode.INPUT_NOT_FOUND,
        f"error reading input path {exc.filename}: {exc.strerror or exc}",
    ) from exc


def enumerate_files(root: Path) -> list[Path]:
    """Return every regular file beneath ``root`` in lexical walk order.

    No extension filtering happens here; content the decoder cannot read is
    rejected later, per job. A file path is its own single-entry tree.

    Raises:
        SetupError: If ``root`` does not exist or a directory cannot be listed.
    """
    if not root.exists():
        raise SetupError(
            ThumbnailerErrorCode.INPUT_NOT_FOUND,
            f"input path does not exist: {root}",
        )
    if root.is_file():
        return [root]
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        for name in sorted(filenames):
            candidate = Path(dirpath) / name
            if candidate.is_file():
                files.append(candidate)
    return files


def build_jobs(paths: Sequence[Path], options: TransformOptions) -> list[Job]:
    return [{"path": p, "options": options} for p in paths]


__all__ = ["build_jobs", "enumerate_files"]
