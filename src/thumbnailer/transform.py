from __future__ import annotations

import os
import shutil
import struct
import threading
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import Final

from PIL import Image, ImageFile, UnidentifiedImageError

from . import _test_hooks
from .errors import (
    DecodeError,
    EncodeError,
    FileIOError,
    JobError,
    SetupError,
    ThumbnailerErrorCode,
    UnsupportedFormatError,
)
from .logging import get_logger
from .preprocess import Preprocessor, select_preprocessor
from .types import SUPPORTED_FORMATS, Job, OutputFormat, ResizeMode, TransformOptions

# Ensure truncated images fail cleanly
ImageFile.LOAD_TRUNCATED_IMAGES = False

_PIL_FORMATS: Final[dict[OutputFormat, str]] = {
    "jpeg": "JPEG",
    "png": "PNG",
    "gif": "GIF",
    "bmp": "BMP",
}

# Modes each encoder writes without conversion.
_NATIVE_MODES: Final[dict[OutputFormat, frozenset[str]]] = {
    "jpeg": frozenset({"L", "RGB", "CMYK"}),
    "png": frozenset({"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}),
    "gif": frozenset({"1", "L", "P", "RGB", "RGBA"}),
    "bmp": frozenset({"1", "L", "P", "RGB", "RGBA"}),
}

_SOURCE_IO_ERRORS: Final[tuple[type[OSError], ...]] = (
    FileNotFoundError,
    PermissionError,
    IsADirectoryError,
)

# Raised by Pillow for corrupt, truncated or oversized data and malformed metadata.
_DECODE_ERRORS: Final[tuple[type[Exception], ...]] = (
    OSError,
    SyntaxError,
    ValueError,
    TypeError,
    KeyError,
    struct.error,
    Image.DecompressionBombError,
)


def normalize_format(value: str) -> OutputFormat:
    """Map a configured format string onto the supported set.

    Raises:
        UnsupportedFormatError: For anything outside jpeg, png, gif, bmp.
    """
    lowered = value.strip().lower()
    for fmt in SUPPORTED_FORMATS:
        if fmt == lowered:
            return fmt
    raise UnsupportedFormatError(value)


def resize_mode_for(max_width: int, max_height: int) -> ResizeMode:
    if max_width < 0 or max_height < 0:
        raise SetupError(
            ThumbnailerErrorCode.INVALID_CONFIG,
            f"width and height must not be negative, got {max_width}x{max_height}",
        )
    if max_width > 0 and max_height > 0:
        return "fit"
    if max_width > 0:
        return "width"
    if max_height > 0:
        return "height"
    raise SetupError(
        ThumbnailerErrorCode.INVALID_CONFIG,
        "either max width or max height must be specified",
    )


def _round_half_up(value: float) -> int:
    return max(1, int(value + 0.5))


def compute_target_size(
    src_width: int, src_height: int, max_width: int, max_height: int
) -> tuple[int, int]:
    """Return the output size for a source image.

    ``fit`` keeps the image inside both bounds using the smaller scale factor and
    never enlarges an image that already fits. ``width`` and ``height`` scale to
    the exact target on that axis and derive the other from the aspect ratio.
    """
    mode = resize_mode_for(max_width, max_height)
    if mode == "fit":
        if src_width <= max_width and src_height <= max_height:
            return src_width, src_height
        scale = min(max_width / src_width, max_height / src_height)
        return (
            min(max_width, _round_half_up(src_width * scale)),
            min(max_height, _round_half_up(src_height * scale)),
        )
    if mode == "width":
        return max_width, _round_half_up(src_height * max_width / src_width)
    return _round_half_up(src_width * max_height / src_height), max_height


def _decode(source: Path) -> Image.Image:
    try:
        img = Image.open(source)
    except UnidentifiedImageError as exc:
        raise DecodeError(f"error decoding image file {source}: {exc}") from exc
    except _SOURCE_IO_ERRORS as exc:
        raise FileIOError(
            ThumbnailerErrorCode.SOURCE_UNREADABLE,
            f"error opening image file {source}: {exc}",
        ) from exc
    except _DECODE_ERRORS as exc:
        raise DecodeError(f"error decoding image file {source}: {exc}") from exc
    try:
        img.load()
    except _DECODE_ERRORS as exc:
        img.close()
        raise DecodeError(f"error decoding image file {source}: {exc}") from exc
    return img


def _to_8bit(img: Image.Image) -> Image.Image:
    """Scale 16/32-bit integer greyscale into 8-bit ``L``; other modes pass through."""
    if img.mode == "I" or img.mode.startswith("I;16"):
        return img.convert("I").point(lambda v: v / 256).convert("L")
    return img


def _load_resized(source: Path, max_width: int, max_height: int) -> Image.Image:
    with _decode(source) as img:
        try:
            upright = _to_8bit(_test_hooks.exif_transpose(img))
            size = compute_target_size(upright.width, upright.height, max_width, max_height)
            if size == upright.size:
                return upright
            return upright.resize(size, Image.Resampling.LANCZOS)
        except _DECODE_ERRORS as exc:
            raise DecodeError(f"error decoding image file {source}: {exc}") from exc


def _convert_for(img: Image.Image, fmt: OutputFormat) -> Image.Image:
    if img.mode in _NATIVE_MODES[fmt]:
        return img
    if fmt != "jpeg" and "A" in img.mode:
        return img.convert("RGBA")
    return img.convert("RGB")


def _encode(img: Image.Image, out_path: Path, fmt: OutputFormat, quality: int) -> None:
    """Write ``out_path`` through a private temp file swapped in with ``os.replace``."""
    tmp_path = out_path.with_name(f".{out_path.name}.{uuid.uuid4().hex[:12]}.part")
    try:
        fh = tmp_path.open("xb")
    except OSError as exc:
        raise FileIOError(
            ThumbnailerErrorCode.OUTPUT_WRITE_FAILED,
            f"error saving image {out_path}: {exc}",
        ) from exc
    try:
        try:
            with fh:
                prepared = _convert_for(img, fmt)
                if fmt == "jpeg":
                    prepared.save(fh, format=_PIL_FORMATS[fmt], quality=quality)
                else:
                    prepared.save(fh, format=_PIL_FORMATS[fmt])
        except (OSError, ValueError, KeyError) as exc:
            raise EncodeError(f"error saving image {out_path}: {exc}") from exc
        try:
            os.replace(tmp_path, out_path)
        except OSError as exc:
            raise FileIOError(
                ThumbnailerErrorCode.OUTPUT_WRITE_FAILED,
                f"error saving image {out_path}: {exc}",
            ) from exc
    except JobError:
        tmp_path.unlink(missing_ok=True)
        raise


class TransformPipeline:
    """Preprocess, decode, resize and encode a single source file.

    Safe to share between worker threads. The only shared state is the record
    of which source claimed each output path, used to warn when two sources
    share a stem; the last one written wins.
    """

    def __init__(self, *, preprocessors: Sequence[Preprocessor] = ()) -> None:
        self._preprocessors = tuple(preprocessors)
        self._claims: dict[Path, Path] = {}
        self._claims_lock = threading.Lock()
        self._logger = get_logger(__name__)

    def _claim(self, out_path: Path, source: Path) -> None:
        with self._claims_lock:
            owner = self._claims.setdefault(out_path, source)
        if owner != source:
            self._logger.warning(
                "Thumbnail %s for %s replaces the one written for %s",
                out_path,
                source,
                owner,
                extra={"path": str(source)},
            )

    def transform(self, path: Path, options: TransformOptions) -> Path:
        """Write the thumbnail for ``path`` and return its location.

        The thumbnail is named after the source stem, whatever intermediate a
        preprocessing stage decoded from.

        Raises:
            UnsupportedFormatError: Output format outside the supported set.
            PreprocessingError: External decoder step failed.
            FileIOError: Source unreadable or output not writable.
            DecodeError: Source is not a decodable image.
            EncodeError: Encoder rejected the image.
        """
        fmt = normalize_format(options["output_format"])
        self._logger.info("Starting processing of image %s", path, extra={"path": str(path)})

        stage = select_preprocessor(path, self._preprocessors)
        if stage is None:
            resized = _load_resized(path, options["max_width"], options["max_height"])
        else:
            workdir = Path(_test_hooks.mkdtemp("thumbnailer_"))
            try:
                source = stage.prepare(path, workdir)
                self._logger.debug(
                    "Preprocessed %s with %s into %s",
                    path,
                    stage.name,
                    source,
                    extra={"path": str(path)},
                )
                resized = _load_resized(source, options["max_width"], options["max_height"])
            finally:
                shutil.rmtree(workdir, ignore_errors=True)

        out_path = options["output_dir"] / f"{path.stem}.{fmt}"
        self._claim(out_path, path)
        _encode(resized, out_path, fmt, options["quality"])
        return out_path

    def run_job(self, job: Job) -> Path:
        return self.transform(job["path"], job["options"])


__all__ = [
    "TransformPipeline",
    "compute_target_size",
    "normalize_format",
    "resize_mode_for",
]
