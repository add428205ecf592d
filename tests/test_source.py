from __future__ import annotations

from pathlib import Path

import pytest

from thumbnailer.errors import SetupError, ThumbnailerErrorCode
from thumbnailer.source import build_jobs, enumerate_files
from thumbnailer.types import TransformOptions


def test_enumerate_walks_tree_in_lexical_order(tmp_path: Path) -> None:
    (tmp_path / "b").mkdir()
    (tmp_path / "a" / "nested").mkdir(parents=True)
    for rel in ["z.png", "b/one.jpg", "a/two.gif", "a/nested/three.txt", "a/1.png"]:
        (tmp_path / rel).write_bytes(b"x")

    files = enumerate_files(tmp_path)

    assert [p.relative_to(tmp_path).as_posix() for p in files] == [
        "z.png",
        "a/1.png",
        "a/two.gif",
        "a/nested/three.txt",
        "b/one.jpg",
    ]


def test_enumerate_empty_directory(tmp_path: Path) -> None:
    assert enumerate_files(tmp_path) == []


def test_enumerate_single_file(tmp_path: Path) -> None:
    f = tmp_path / "only.png"
    f.write_bytes(b"x")
    assert enumerate_files(f) == [f]


def test_enumerate_missing_root(tmp_path: Path) -> None:
    with pytest.raises(SetupError) as excinfo:
        enumerate_files(tmp_path / "nope")
    assert excinfo.value.code is ThumbnailerErrorCode.INPUT_NOT_FOUND


def test_build_jobs_shares_options(tmp_path: Path) -> None:
    options: TransformOptions = {
        "max_width": 200,
        "max_height": 0,
        "output_format": "png",
        "quality": 75,
        "output_dir": tmp_path,
    }
    jobs = build_jobs([tmp_path / "a.png", tmp_path / "b.png"], options)
    assert [j["path"].name for j in jobs] == ["a.png", "b.png"]
    assert all(j["options"] is options for j in jobs)
