from __future__ import annotations

import logging
import os
import socket
import sys
import time
from pathlib import Path
from typing import Literal

from thumbnailer.json_utils import JSONValue, dump_json_str

LogFormat = Literal["json", "text"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Structured fields attached by the batch engine through ``extra=``.
STRUCTURED_FIELDS: tuple[str, ...] = ("path", "attempt", "duration_ms", "error_code")


_JSONScalar = str | int | float | bool | None
_ABSENT = object()


def _scalar_field(record: logging.LogRecord, field_name: str) -> tuple[bool, _JSONScalar]:
    """Return (present, value) for a record attribute set through ``extra=``.

    Values that are not JSON scalars count as absent.
    """
    raw: object = record.__dict__.get(field_name, _ABSENT)
    if raw is None or isinstance(raw, (str, int, float, bool)):
        return True, raw
    return False, None


def _utc_timestamp(created: float) -> str:
    millis = int((created % 1) * 1000)
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(created)) + f".{millis:03d}Z"


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Every object carries ``timestamp`` (UTC), ``level``, ``logger``, ``thread``
    and ``message``, the static fields, any structured job fields present on
    the record, and ``exc_info`` when an exception is attached.
    """

    def __init__(
        self,
        *,
        static_fields: dict[str, str],
        extra_field_names: list[str],
    ) -> None:
        super().__init__()
        self._static = dict(static_fields)
        self._field_names = tuple(dict.fromkeys((*extra_field_names, *STRUCTURED_FIELDS)))

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, JSONValue] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        payload.update(self._static)
        for name in self._field_names:
            if name in payload:
                continue
            present, value = _scalar_field(record, name)
            if present:
                payload[name] = value
        if record.exc_info is not None:
            payload["exc_info"] = self.formatException(record.exc_info)
        return dump_json_str(payload, compact=False)


class TextFormatter(logging.Formatter):
    """``[time] [LEVEL] [logger] [thread] key=value ... message``"""

    def __init__(self, *, extra_fields: list[str]) -> None:
        super().__init__()
        self._extra_fields = list(extra_fields)

    def format(self, record: logging.LogRecord) -> str:
        head = (
            f"[{self.formatTime(record, '%Y-%m-%d %H:%M:%S')}] "
            f"[{record.levelname}] [{record.name}] [{record.threadName}]"
        )
        pairs = [
            f"{name}={record.__dict__[name]}"
            for name in self._extra_fields
            if name in record.__dict__
        ]
        line = " ".join([head, *pairs, record.getMessage()])
        if record.exc_info is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _compute_instance_id() -> str:
    """Generate a stable instance ID from hostname and PID."""
    host = socket.gethostname().split(".")[0]
    return f"{host}-{os.getpid()}"


def _level_to_int(level: LogLevel) -> int:
    return logging.getLevelNamesMapping()[level]


def _make_formatter(
    format_mode: LogFormat, static_fields: dict[str, str], extra_field_names: list[str]
) -> logging.Formatter:
    if format_mode == "json":
        return JsonFormatter(static_fields=static_fields, extra_field_names=extra_field_names)
    return TextFormatter(extra_fields=extra_field_names)


def setup_logging(
    *,
    level: LogLevel,
    format_mode: LogFormat,
    service_name: str,
    instance_id: str | None,
    extra_fields: list[str] | None,
    log_file: Path | None = None,
) -> logging.Logger:
    """Setup logging for a thumbnailer run.

    Configures the root logger with either JSON or text formatting and clears
    existing handlers to ensure clean state. Records always go to stdout; when
    ``log_file`` is given they are also appended to that file.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_mode: Output format ("json" for machines, "text" for people)
        service_name: Name to include in all JSON logs
        instance_id: Instance ID (auto-generated if None)
        extra_fields: Extra field names shown in text output (empty list if None)
        log_file: Optional path of an append-mode log file

    Returns:
        Configured root logger

    Raises:
        OSError: If the log file cannot be opened.
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()
    root.setLevel(_level_to_int(level))

    computed_instance_id = instance_id if instance_id is not None else _compute_instance_id()
    static_fields: dict[str, str] = {
        "service": service_name,
        "instance_id": computed_instance_id,
    }
    extra_field_names = extra_fields if extra_fields is not None else []

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(logging.DEBUG)
    stream_handler.setFormatter(_make_formatter(format_mode, static_fields, extra_field_names))
    root.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_make_formatter(format_mode, static_fields, extra_field_names))
        root.addHandler(file_handler)

    # Pillow logs every plugin lookup at DEBUG
    logging.getLogger("PIL").setLevel(logging.WARNING)

    return root


# Expose stdlib logging module for typed test utilities.
stdlib_logging = logging


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance by name.

    Example:
        >>> from thumbnailer.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Processing started")
    """
    return logging.getLogger(name)


__all__ = [
    "STRUCTURED_FIELDS",
    "JsonFormatter",
    "LogFormat",
    "LogLevel",
    "TextFormatter",
    "get_logger",
    "setup_logging",
    "stdlib_logging",
]
