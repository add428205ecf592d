from __future__ import annotations

import logging
from pathlib import Path

from thumbnailer.json_utils import load_json_str, narrow_json_to_dict
from thumbnailer.logging import (
    STRUCTURED_FIELDS,
    JsonFormatter,
    TextFormatter,
    get_logger,
    setup_logging,
    stdlib_logging,
)


def _record(msg: str = "Finished processing image a.png") -> logging.LogRecord:
    return stdlib_logging.LogRecord(
        name="thumbnailer.retry",
        level=stdlib_logging.INFO,
        pathname="retry.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_includes_structured_fields() -> None:
    formatter = JsonFormatter(
        static_fields={"service": "thumbnailer", "instance_id": "host-1"},
        extra_field_names=[],
    )
    record = _record()
    record.path = "a.png"
    record.attempt = 2
    record.duration_ms = 12.5

    parsed = narrow_json_to_dict(load_json_str(formatter.format(record)))

    assert parsed["service"] == "thumbnailer"
    assert parsed["instance_id"] == "host-1"
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "thumbnailer.retry"
    assert parsed["path"] == "a.png"
    assert parsed["attempt"] == 2
    assert parsed["duration_ms"] == 12.5
    assert "error_code" not in parsed


def test_json_formatter_skips_non_json_values() -> None:
    formatter = JsonFormatter(static_fields={}, extra_field_names=["path"])
    record = _record()
    record.path = Path("a.png")
    parsed = narrow_json_to_dict(load_json_str(formatter.format(record)))
    assert "path" not in parsed


def test_text_formatter_renders_extra_fields() -> None:
    formatter = TextFormatter(extra_fields=list(STRUCTURED_FIELDS))
    record = _record("Error processing image b.png")
    record.path = "b.png"
    record.error_code = "DECODE_FAILED"

    line = formatter.format(record)

    assert "[INFO]" in line
    assert "[thumbnailer.retry]" in line
    assert "path=b.png" in line
    assert "error_code=DECODE_FAILED" in line
    assert "attempt=" not in line
    assert line.endswith("Error processing image b.png")


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "processing.log"
    root = setup_logging(
        level="INFO",
        format_mode="text",
        service_name="thumbnailer",
        instance_id="test-1",
        extra_fields=list(STRUCTURED_FIELDS),
        log_file=log_file,
    )
    assert root.level == logging.INFO
    assert len(root.handlers) == 2

    get_logger("thumbnailer.test").info("hello", extra={"path": "x.png"})
    get_logger("thumbnailer.test").debug("hidden")

    text = log_file.read_text(encoding="utf-8")
    assert "path=x.png hello" in text
    assert "hidden" not in text


def test_setup_logging_replaces_handlers() -> None:
    for _ in range(2):
        root = setup_logging(
            level="DEBUG",
            format_mode="json",
            service_name="thumbnailer",
            instance_id=None,
            extra_fields=None,
        )
    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
