"""Batch image thumbnailer with a bounded worker pool and a timing report."""

from __future__ import annotations

from .aggregator import ResultAggregator
from .errors import (
    DecodeError,
    EncodeError,
    FileIOError,
    JobError,
    PreprocessingError,
    ReportWriteError,
    SetupError,
    ThumbnailerError,
    ThumbnailerErrorCode,
    UnsupportedFormatError,
)
from .pool import ConcurrencyController
from .retry import RetryExecutor
from .runner import run_batch
from .transform import TransformPipeline
from .types import BatchResult, Job, JobOutcome, RunStats, TransformOptions

__all__ = [
    "BatchResult",
    "ConcurrencyController",
    "DecodeError",
    "EncodeError",
    "FileIOError",
    "Job",
    "JobError",
    "JobOutcome",
    "PreprocessingError",
    "ReportWriteError",
    "ResultAggregator",
    "RetryExecutor",
    "RunStats",
    "SetupError",
    "ThumbnailerError",
    "ThumbnailerErrorCode",
    "TransformOptions",
    "TransformPipeline",
    "UnsupportedFormatError",
    "run_batch",
]
