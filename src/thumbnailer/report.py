"""Summary report rendering and writing.

The report body is plain text with one header block and one numbered line per
successful job, in the order jobs completed. Durations use the compact
``1h2m3.5s`` / ``12.5ms`` notation that existing report consumers parse.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Final

from .errors import ReportWriteError
from .logging import get_logger
from .types import RunStats

REPORT_FILENAME: Final[str] = "summary_report.txt"

_NS_PER_US: Final[int] = 1_000
_NS_PER_MS: Final[int] = 1_000_000
_NS_PER_S: Final[int] = 1_000_000_000
_NS_PER_MIN: Final[int] = 60 * _NS_PER_S
_NS_PER_HOUR: Final[int] = 60 * _NS_PER_MIN


def _fixed(value: int, unit: int) -> str:
    """Render value/unit as a decimal with trailing zeros trimmed."""
    whole, rem = divmod(value, unit)
    if rem == 0:
        return str(whole)
    width = len(str(unit)) - 1
    frac = str(rem).rjust(width, "0").rstrip("0")
    return f"{whole}.{frac}"


def format_duration(seconds: float) -> str:
    """Format a duration in seconds, e.g. ``0s``, ``850ns``, ``1.5ms``, ``2m3.25s``."""
    ns = round(seconds * _NS_PER_S)
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < _NS_PER_US:
        return f"{sign}{ns}ns"
    if ns < _NS_PER_MS:
        return f"{sign}{_fixed(ns, _NS_PER_US)}µs"
    if ns < _NS_PER_S:
        return f"{sign}{_fixed(ns, _NS_PER_MS)}ms"
    hours, rest = divmod(ns, _NS_PER_HOUR)
    minutes, rest = divmod(rest, _NS_PER_MIN)
    out = f"{_fixed(rest, _NS_PER_S)}s"
    if hours > 0:
        return f"{sign}{hours}h{minutes}m{out}"
    if minutes > 0:
        return f"{sign}{minutes}m{out}"
    return f"{sign}{out}"


def render_summary(
    total: int,
    success: int,
    errors: int,
    elapsed_seconds: float,
    durations: Sequence[float],
) -> str:
    lines = [
        "Summary Report:",
        f"Total images processed: {total}",
        f"Successfully processed: {success}",
        f"Errors encountered: {errors}",
        f"Total time taken: {format_duration(elapsed_seconds)}",
    ]
    for idx, duration in enumerate(durations, start=1):
        lines.append(f"Image {idx} processing time: {format_duration(duration)}")
    return "\n".join(lines) + "\n"


def render_from_stats(stats: RunStats, elapsed_seconds: float) -> str:
    return render_summary(
        stats["total"],
        stats["success_count"],
        stats["error_count"],
        elapsed_seconds,
        stats["durations"],
    )


def write_summary_report(output_dir: Path, report: str) -> Path:
    """Write the report once to ``<output_dir>/summary_report.txt``.

    Raises:
        ReportWriteError: If the file cannot be written. Not retried.
    """
    report_path = output_dir / REPORT_FILENAME
    try:
        report_path.write_text(report, encoding="utf-8")
    except OSError as exc:
        raise ReportWriteError(f"failed to write {report_path}: {exc}") from exc
    get_logger(__name__).info("Summary report saved to %s", report_path)
    return report_path


__all__ = [
    "REPORT_FILENAME",
    "format_duration",
    "render_from_stats",
    "render_summary",
    "write_summary_report",
]
