from __future__ import annotations

import subprocess
from pathlib import Path

import pytest
from PIL import Image

from tests.conftest import write_image
from thumbnailer import _test_hooks
from thumbnailer._test_hooks import SubprocessRunResult
from thumbnailer.errors import PreprocessingError, ThumbnailerErrorCode
from thumbnailer.preprocess import (
    ExiftoolPreprocessor,
    default_preprocessors,
    select_preprocessor,
)
from thumbnailer.transform import TransformPipeline
from thumbnailer.types import TransformOptions


class _FakeProc:
    def __init__(self, returncode: int, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout: bytes | str | None = stdout
        self.stderr: bytes | str | None = stderr


class _FakeExiftool:
    """Records invocations and writes the preview JPEG where ``-w`` points.

    Like the real tool, ``-w`` refuses to replace an existing file.
    """

    def __init__(self, *, returncode: int = 0, stderr: str = "", write: bool = True) -> None:
        self.calls: list[list[str]] = []
        self._returncode = returncode
        self._stderr = stderr
        self._write = write

    def __call__(
        self,
        args: list[str],
        *,
        capture_output: bool = False,
        check: bool = False,
        timeout: float | None = None,
        text: bool = False,
    ) -> SubprocessRunResult:
        self.calls.append(args)
        if self._write:
            source = Path(args[-1])
            target = Path(args[args.index("-w") + 1].replace("%f", source.stem))
            if target.exists():
                return _FakeProc(0, stderr=f"Error: '{target}' already exists")
            write_image(target, (600, 400), fmt="JPEG")
        return _FakeProc(self._returncode, stderr=self._stderr)


class _TrackingMkdtemp:
    def __init__(self, root: Path) -> None:
        self._root = root
        self.created: list[Path] = []

    def __call__(self, prefix: str) -> str:
        path = self._root / f"{prefix}{len(self.created)}"
        path.mkdir(parents=True)
        self.created.append(path)
        return str(path)


def _found(name: str) -> str | None:
    return f"/usr/bin/{name}"


def _missing(name: str) -> str | None:
    return None


def _options(out_dir: Path, width: int = 300) -> TransformOptions:
    return {
        "max_width": width,
        "max_height": 0,
        "output_format": "jpeg",
        "quality": 80,
        "output_dir": out_dir,
    }


def test_handles_cr3_case_insensitively() -> None:
    stage = ExiftoolPreprocessor()
    assert stage.handles(Path("a/IMG_1.CR3"))
    assert stage.handles(Path("a/IMG_1.cr3"))
    assert not stage.handles(Path("a/IMG_1.jpg"))
    assert stage.name == "exiftool"


def test_prepare_extracts_into_workdir(tmp_path: Path) -> None:
    raw = tmp_path / "IMG_0001.CR3"
    raw.write_bytes(b"raw")
    workdir = tmp_path / "scratch"
    workdir.mkdir()
    fake = _FakeExiftool()
    _test_hooks.which = _found
    _test_hooks.subprocess_run = fake

    out = ExiftoolPreprocessor().prepare(raw, workdir)

    assert out == workdir / "IMG_0001.jpg"
    assert out.is_file()
    assert not (tmp_path / "IMG_0001.jpg").exists()
    assert fake.calls == [
        ["/usr/bin/exiftool", "-b", "-JpgFromRaw", "-w", f"{workdir}/%f.jpg", str(raw)]
    ]


def test_prepare_leaves_sibling_jpeg_untouched(tmp_path: Path) -> None:
    raw = tmp_path / "IMG_0001.cr3"
    raw.write_bytes(b"raw")
    sibling = tmp_path / "IMG_0001.jpg"
    sibling.write_bytes(b"camera jpeg")
    workdir = tmp_path / "scratch"
    workdir.mkdir()
    _test_hooks.which = _found
    _test_hooks.subprocess_run = _FakeExiftool()

    out = ExiftoolPreprocessor().prepare(raw, workdir)

    assert out.parent == workdir
    assert sibling.read_bytes() == b"camera jpeg"


def test_missing_executable(tmp_path: Path) -> None:
    _test_hooks.which = _missing
    with pytest.raises(PreprocessingError) as excinfo:
        ExiftoolPreprocessor().prepare(tmp_path / "x.cr3", tmp_path)
    assert excinfo.value.code is ThumbnailerErrorCode.PREPROCESS_FAILED
    assert "not found" in excinfo.value.message


def test_nonzero_exit_includes_stderr(tmp_path: Path) -> None:
    _test_hooks.which = _found
    _test_hooks.subprocess_run = _FakeExiftool(returncode=1, stderr="Error: bad file", write=False)
    with pytest.raises(PreprocessingError) as excinfo:
        ExiftoolPreprocessor().prepare(tmp_path / "x.cr3", tmp_path)
    assert "Error: bad file" in excinfo.value.message


def test_no_preview_written(tmp_path: Path) -> None:
    _test_hooks.which = _found
    _test_hooks.subprocess_run = _FakeExiftool(write=False)
    with pytest.raises(PreprocessingError) as excinfo:
        ExiftoolPreprocessor().prepare(tmp_path / "x.cr3", tmp_path)
    assert "no embedded preview" in excinfo.value.message


def test_timeout_is_preprocessing_error(tmp_path: Path) -> None:
    def _slow(
        args: list[str],
        *,
        capture_output: bool = False,
        check: bool = False,
        timeout: float | None = None,
        text: bool = False,
    ) -> SubprocessRunResult:
        raise subprocess.TimeoutExpired(args, timeout or 0.0)

    _test_hooks.which = _found
    _test_hooks.subprocess_run = _slow
    with pytest.raises(PreprocessingError):
        ExiftoolPreprocessor(timeout_seconds=1.0).prepare(tmp_path / "x.cr3", tmp_path)


def test_select_preprocessor() -> None:
    stages = default_preprocessors()
    assert select_preprocessor(Path("a.cr3"), stages) is stages[0]
    assert select_preprocessor(Path("a.png"), stages) is None
    assert select_preprocessor(Path("a.cr3"), ()) is None


def test_pipeline_thumbnails_raw_via_exiftool(tmp_path: Path) -> None:
    raw = tmp_path / "in" / "IMG_0042.cr3"
    raw.parent.mkdir()
    raw.write_bytes(b"raw")
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    scratch = _TrackingMkdtemp(tmp_path / "tmp")
    _test_hooks.which = _found
    _test_hooks.subprocess_run = _FakeExiftool()
    _test_hooks.mkdtemp = scratch

    out = TransformPipeline(preprocessors=default_preprocessors()).transform(
        raw, _options(out_dir)
    )

    assert out == out_dir / "IMG_0042.jpeg"
    with Image.open(out) as img:
        assert img.size == (300, 200)
    assert len(scratch.created) == 1
    assert not scratch.created[0].exists()
    assert sorted(p.name for p in raw.parent.iterdir()) == ["IMG_0042.cr3"]


def test_pipeline_keeps_raw_plus_jpeg_pair_intact(tmp_path: Path) -> None:
    src = tmp_path / "in"
    raw = src / "IMG_0001.cr3"
    src.mkdir()
    raw.write_bytes(b"raw")
    camera_jpeg = write_image(src / "IMG_0001.jpg", (800, 600), fmt="JPEG")
    original_bytes = camera_jpeg.read_bytes()
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    _test_hooks.which = _found
    _test_hooks.subprocess_run = _FakeExiftool()
    _test_hooks.mkdtemp = _TrackingMkdtemp(tmp_path / "tmp")
    pipeline = TransformPipeline(preprocessors=default_preprocessors())

    pipeline.transform(raw, _options(out_dir))
    pipeline.transform(camera_jpeg, _options(out_dir))

    assert camera_jpeg.read_bytes() == original_bytes
    assert sorted(p.name for p in src.iterdir()) == ["IMG_0001.cr3", "IMG_0001.jpg"]


def test_pipeline_removes_workdir_on_failure(tmp_path: Path) -> None:
    raw = tmp_path / "IMG_0009.cr3"
    raw.write_bytes(b"raw")
    scratch = _TrackingMkdtemp(tmp_path / "tmp")
    _test_hooks.which = _found
    _test_hooks.subprocess_run = _FakeExiftool(returncode=2, stderr="boom", write=False)
    _test_hooks.mkdtemp = scratch

    with pytest.raises(PreprocessingError):
        TransformPipeline(preprocessors=default_preprocessors()).transform(
            raw, _options(tmp_path)
        )

    assert len(scratch.created) == 1
    assert not scratch.created[0].exists()
