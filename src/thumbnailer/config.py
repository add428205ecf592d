from __future__ import annotations

import os
from pathlib import Path
from typing import Final, TypedDict

from . import _test_hooks
from .errors import SetupError, ThumbnailerErrorCode
from .json_utils import (
    InvalidJsonError,
    JSONTypeError,
    JSONValue,
    load_json_str,
    narrow_json_to_dict,
    optional_int,
    optional_str,
)
from .logging import LogFormat, LogLevel
from .types import TransformOptions

DEFAULT_COMPRESSION: Final[int] = 75
DEFAULT_OUTPUT_FORMAT: Final[str] = "jpeg"
DEFAULT_MAX_ATTEMPTS: Final[int] = 1
DEFAULT_LOG_LEVEL: Final[LogLevel] = "INFO"
DEFAULT_LOG_FORMAT: Final[LogFormat] = "text"
DEFAULT_LOG_FILE: Final[Path] = Path("processing.log")

_ENV_PREFIX: Final[str] = "THUMBNAILER_"


class ThumbnailerSettings(TypedDict):
    input_path: Path
    output_path: Path
    compression: int
    max_width: int
    max_height: int
    output_format: str
    parallelism: int
    max_attempts: int
    log_level: LogLevel
    log_format: LogFormat
    log_file: Path | None


class SettingsOverrides(TypedDict, total=False):
    """One configuration layer; only the keys a source actually sets are present."""

    input_path: Path
    output_path: Path
    compression: int
    max_width: int
    max_height: int
    output_format: str
    parallelism: int
    max_attempts: int
    log_level: LogLevel
    log_format: LogFormat
    log_file: Path | None


def default_parallelism() -> int:
    """Number of CPUs available to this process."""
    return os.cpu_count() or 1


def _parse_log_level(raw: str, source: str) -> LogLevel:
    levels: dict[str, LogLevel] = {
        "DEBUG": "DEBUG",
        "INFO": "INFO",
        "WARNING": "WARNING",
        "ERROR": "ERROR",
        "CRITICAL": "CRITICAL",
    }
    level = levels.get(raw.strip().upper())
    if level is None:
        raise SetupError(
            ThumbnailerErrorCode.INVALID_CONFIG,
            f"invalid log level in {source}: {raw!r}",
        )
    return level


def _parse_log_format(raw: str, source: str) -> LogFormat:
    normalized = raw.strip().lower()
    if normalized == "json":
        return "json"
    if normalized == "text":
        return "text"
    raise SetupError(
        ThumbnailerErrorCode.INVALID_CONFIG,
        f"invalid log format in {source}: {raw!r}",
    )


def overrides_from_json(data: dict[str, JSONValue]) -> SettingsOverrides:
    """Read the JSON config file keys; values of the wrong JSON type are ignored."""
    out: SettingsOverrides = {}
    if (s := optional_str(data, "input")) is not None:
        out["input_path"] = Path(s)
    if (s := optional_str(data, "output")) is not None:
        out["output_path"] = Path(s)
    if (n := optional_int(data, "compression")) is not None:
        out["compression"] = n
    if (n := optional_int(data, "width")) is not None:
        out["max_width"] = n
    if (n := optional_int(data, "height")) is not None:
        out["max_height"] = n
    if (s := optional_str(data, "format")) is not None:
        out["output_format"] = s.strip().lower()
    if (n := optional_int(data, "parallelism")) is not None:
        out["parallelism"] = n
    if (n := optional_int(data, "retries")) is not None:
        out["max_attempts"] = n
    return out


def load_config_file(path: Path) -> SettingsOverrides:
    """Load a JSON config file.

    Raises:
        SetupError: If the file cannot be read or is not a JSON object.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SetupError(
            ThumbnailerErrorCode.CONFIG_UNREADABLE,
            f"error reading config file {path}: {exc}",
        ) from exc
    try:
        data = narrow_json_to_dict(load_json_str(text))
    except (InvalidJsonError, JSONTypeError) as exc:
        raise SetupError(
            ThumbnailerErrorCode.CONFIG_UNREADABLE,
            f"error reading config file {path}: {exc}",
        ) from exc
    return overrides_from_json(data)


def _env_str(name: str) -> str | None:
    value = _test_hooks.get_env(_ENV_PREFIX + name)
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed if trimmed != "" else None


def _env_int(name: str) -> int | None:
    raw = _env_str(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise SetupError(
            ThumbnailerErrorCode.INVALID_CONFIG,
            f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}",
        ) from None


def overrides_from_env() -> SettingsOverrides:
    out: SettingsOverrides = {}
    if (s := _env_str("INPUT")) is not None:
        out["input_path"] = Path(s)
    if (s := _env_str("OUTPUT")) is not None:
        out["output_path"] = Path(s)
    if (n := _env_int("COMPRESSION")) is not None:
        out["compression"] = n
    if (n := _env_int("WIDTH")) is not None:
        out["max_width"] = n
    if (n := _env_int("HEIGHT")) is not None:
        out["max_height"] = n
    if (s := _env_str("FORMAT")) is not None:
        out["output_format"] = s.lower()
    if (n := _env_int("PARALLELISM")) is not None:
        out["parallelism"] = n
    if (n := _env_int("RETRIES")) is not None:
        out["max_attempts"] = n
    if (s := _env_str("LOG_LEVEL")) is not None:
        out["log_level"] = _parse_log_level(s, f"{_ENV_PREFIX}LOG_LEVEL")
    if (s := _env_str("LOG_FORMAT")) is not None:
        out["log_format"] = _parse_log_format(s, f"{_ENV_PREFIX}LOG_FORMAT")
    return out


def validate_settings(settings: ThumbnailerSettings) -> None:
    """Reject configurations that cannot run.

    Raises:
        SetupError: On the first invalid value found.
    """
    if settings["max_width"] < 0 or settings["max_height"] < 0:
        raise SetupError(
            ThumbnailerErrorCode.INVALID_CONFIG,
            "width and height must not be negative",
        )
    if settings["max_width"] == 0 and settings["max_height"] == 0:
        raise SetupError(
            ThumbnailerErrorCode.INVALID_CONFIG,
            "either max width or max height must be specified",
        )
    if not 1 <= settings["compression"] <= 100:
        raise SetupError(
            ThumbnailerErrorCode.INVALID_CONFIG,
            f"compression must be between 1 and 100, got {settings['compression']}",
        )
    if settings["parallelism"] < 1:
        raise SetupError(
            ThumbnailerErrorCode.INVALID_CONCURRENCY,
            f"parallelism must be >= 1, got {settings['parallelism']}",
        )
    if settings["max_attempts"] < 1:
        raise SetupError(
            ThumbnailerErrorCode.INVALID_CONFIG,
            f"retries must be >= 1, got {settings['max_attempts']}",
        )


def load_settings(
    cli: SettingsOverrides,
    *,
    config_file: Path | None = None,
) -> ThumbnailerSettings:
    """Build the run configuration.

    Precedence, lowest first: defaults, JSON config file, THUMBNAILER_* env vars,
    explicit command-line flags.

    Raises:
        SetupError: If the config file is unreadable, a required path is missing,
            or any value fails validation.
    """
    merged: SettingsOverrides = {}
    if config_file is not None:
        merged.update(load_config_file(config_file))
    merged.update(overrides_from_env())
    merged.update(cli)

    input_path = merged.get("input_path")
    output_path = merged.get("output_path")
    if input_path is None:
        raise SetupError(ThumbnailerErrorCode.INVALID_CONFIG, "input path is required")
    if output_path is None:
        raise SetupError(ThumbnailerErrorCode.INVALID_CONFIG, "output path is required")

    settings: ThumbnailerSettings = {
        "input_path": input_path,
        "output_path": output_path,
        "compression": merged.get("compression", DEFAULT_COMPRESSION),
        "max_width": merged.get("max_width", 0),
        "max_height": merged.get("max_height", 0),
        "output_format": merged.get("output_format", DEFAULT_OUTPUT_FORMAT),
        "parallelism": merged.get("parallelism", default_parallelism()),
        "max_attempts": merged.get("max_attempts", DEFAULT_MAX_ATTEMPTS),
        "log_level": merged.get("log_level", DEFAULT_LOG_LEVEL),
        "log_format": merged.get("log_format", DEFAULT_LOG_FORMAT),
        "log_file": merged.get("log_file", DEFAULT_LOG_FILE),
    }
    validate_settings(settings)
    return settings


def prepare_output_dir(path: Path) -> None:
    """Create the output directory and check that it is writable.

    Raises:
        SetupError: If the directory cannot be created or written.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise SetupError(
            ThumbnailerErrorCode.OUTPUT_UNWRITABLE,
            f"error creating output directory {path}: {exc}",
        ) from exc
    if not os.access(path, os.W_OK):
        raise SetupError(
            ThumbnailerErrorCode.OUTPUT_UNWRITABLE,
            f"output directory is not writable: {path}",
        )


def transform_options_from(settings: ThumbnailerSettings) -> TransformOptions:
    return {
        "max_width": settings["max_width"],
        "max_height": settings["max_height"],
        "output_format": settings["output_format"],
        "quality": settings["compression"],
        "output_dir": settings["output_path"],
    }


__all__ = [
    "DEFAULT_COMPRESSION",
    "DEFAULT_LOG_FILE",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_OUTPUT_FORMAT",
    "SettingsOverrides",
    "ThumbnailerSettings",
    "default_parallelism",
    "load_config_file",
    "load_settings",
    "overrides_from_env",
    "overrides_from_json",
    "prepare_output_dir",
    "transform_options_from",
    "validate_settings",
]
