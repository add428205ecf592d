from __future__ import annotations

from pathlib import Path
from typing import Final, Literal, TypedDict

OutputFormat = Literal["jpeg", "png", "gif", "bmp"]
ResizeMode = Literal["fit", "width", "height"]
OutcomeStatus = Literal["success", "failure"]

SUPPORTED_FORMATS: Final[tuple[OutputFormat, ...]] = ("jpeg", "png", "gif", "bmp")


class TransformOptions(TypedDict):
    """Options in effect for every job of a run.

    ``output_format`` is kept as the raw configured string; an unrecognised
    value is reported per job by the transform pipeline.
    """

    max_width: int
    max_height: int
    output_format: str
    quality: int
    output_dir: Path


class Job(TypedDict):
    path: Path
    options: TransformOptions


class JobOutcome(TypedDict):
    status: OutcomeStatus
    path: Path
    duration_seconds: float  # only meaningful on success
    attempts: int
    error: str | None
    output_path: Path | None


class RunStats(TypedDict):
    total: int
    success_count: int
    error_count: int
    durations: list[float]  # successful jobs only, completion order


class RetryPolicy(TypedDict):
    max_attempts: int


class BatchResult(TypedDict):
    stats: RunStats
    elapsed_seconds: float
    report_path: Path


__all__ = [
    "SUPPORTED_FORMATS",
    "BatchResult",
    "Job",
    "JobOutcome",
    "OutcomeStatus",
    "OutputFormat",
    "ResizeMode",
    "RetryPolicy",
    "RunStats",
    "TransformOptions",
]
