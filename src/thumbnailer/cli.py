"""
Create thumbnails for every image under a directory tree.

Pipeline:
- Resolve configuration (defaults, JSON config file, THUMBNAILER_* env, flags)
- Walk the input tree; every regular file becomes one job
- Resize jobs on a bounded worker pool, retrying failed attempts per policy
- Write <output>/summary_report.txt and print a summary table

Usage examples:
  thumbnailer -i photos/ -o thumbs/ -w 200
  thumbnailer -i photos/ -o thumbs/ -w 320 -H 240 -f png -p 8 -r 2
  thumbnailer -C thumbnailer.json --log-format json --log-file ""
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path
from typing import Final

from rich.console import Console
from rich.table import Table

from .config import (
    DEFAULT_COMPRESSION,
    DEFAULT_LOG_FILE,
    DEFAULT_OUTPUT_FORMAT,
    SettingsOverrides,
    default_parallelism,
    load_settings,
)
from .errors import ReportWriteError, SetupError
from .logging import STRUCTURED_FIELDS, LogFormat, LogLevel, get_logger, setup_logging
from .report import format_duration
from .runner import run_batch

# Rich console for colored CLI output
_console: Console = Console(stderr=True)

_LEVELS: Final[dict[str, LogLevel]] = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}
_FORMATS: Final[dict[str, LogFormat]] = {
    "text": "text",
    "json": "json",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thumbnailer", description="Thumbnailer creates thumbnails of images"
    )
    parser.add_argument("-i", "--input", type=str, default=None, help="Path to the input images")
    parser.add_argument(
        "-o", "--output", type=str, default=None, help="Path to save the output thumbnails"
    )
    parser.add_argument(
        "-c",
        "--compression",
        type=int,
        default=None,
        help=f"Compression level (1-100, default {DEFAULT_COMPRESSION})",
    )
    parser.add_argument(
        "-w", "--width", type=int, default=None, help="Maximum width of the output thumbnails"
    )
    parser.add_argument(
        "-H", "--height", type=int, default=None, help="Maximum height of the output thumbnails"
    )
    parser.add_argument(
        "-f",
        "--format",
        type=str,
        default=None,
        help=f"Output image format (jpeg, png, gif, bmp; default {DEFAULT_OUTPUT_FORMAT})",
    )
    parser.add_argument(
        "-C", "--config", type=str, default=None, help="Path to the JSON configuration file"
    )
    parser.add_argument(
        "-p",
        "--parallelism",
        type=int,
        default=None,
        help=f"Number of parallel image processing tasks (default {default_parallelism()})",
    )
    parser.add_argument(
        "-r",
        "--retries",
        type=int,
        default=None,
        help="Attempts per image before it counts as an error (default 1)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=list(_LEVELS),
        default=None,
        help="Logging level (default INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=list(_FORMATS),
        default=None,
        help="Logging output format (default text)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help=(
            f"Append logs to this file as well as stdout "
            f"(default {DEFAULT_LOG_FILE}; \"\" disables)"
        ),
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> SettingsOverrides:
    # Extract typed CLI values (avoid Any propagation in mypy)
    input_arg: str | None = args.input
    output_arg: str | None = args.output
    compression_arg: int | None = args.compression
    width_arg: int | None = args.width
    height_arg: int | None = args.height
    format_arg: str | None = args.format
    parallelism_arg: int | None = args.parallelism
    retries_arg: int | None = args.retries
    log_level_arg: str | None = args.log_level
    log_format_arg: str | None = args.log_format
    log_file_arg: str | None = args.log_file

    out: SettingsOverrides = {}
    if input_arg is not None:
        out["input_path"] = Path(input_arg)
    if output_arg is not None:
        out["output_path"] = Path(output_arg)
    if compression_arg is not None:
        out["compression"] = compression_arg
    if width_arg is not None:
        out["max_width"] = width_arg
    if height_arg is not None:
        out["max_height"] = height_arg
    if format_arg is not None:
        out["output_format"] = format_arg.strip().lower()
    if parallelism_arg is not None:
        out["parallelism"] = parallelism_arg
    if retries_arg is not None:
        out["max_attempts"] = retries_arg
    if log_level_arg is not None:
        out["log_level"] = _LEVELS[log_level_arg]
    if log_format_arg is not None:
        out["log_format"] = _FORMATS[log_format_arg]
    if log_file_arg is not None:
        out["log_file"] = Path(log_file_arg) if log_file_arg.strip() != "" else None
    return out


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config_arg: str | None = args.config
    config_file = Path(config_arg) if config_arg else None

    try:
        settings = load_settings(overrides_from_args(args), config_file=config_file)
    except SetupError as exc:
        _console.print(f"[red]error[/red] {exc}")
        return 1

    try:
        setup_logging(
            level=settings["log_level"],
            format_mode=settings["log_format"],
            service_name="thumbnailer",
            instance_id=None,
            extra_fields=list(STRUCTURED_FIELDS),
            log_file=settings["log_file"],
        )
    except OSError as exc:
        _console.print(f"[red]error[/red] failed to open log file: {exc}")
        return 1

    logger = get_logger(__name__)
    try:
        result = run_batch(settings)
    except (SetupError, ReportWriteError) as exc:
        logger.error("%s", exc, extra={"error_code": exc.code.value})
        return 1

    stats = result["stats"]
    table = Table(title="Thumbnailer summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Total images", f"{stats['total']:,}")
    table.add_row("Successful", f"{stats['success_count']:,}")
    table.add_row("Errors", f"{stats['error_count']:,}")
    table.add_row("Elapsed", format_duration(result["elapsed_seconds"]))
    table.add_row("Report", str(result["report_path"]))
    _console.print(table)
    return 0


__all__ = ["build_parser", "main", "overrides_from_args"]
