from __future__ import annotations

from enum import Enum
from typing import Literal

ErrorScope = Literal["setup", "job", "report"]


class ErrorCodeBase(str, Enum):
    """Base class for thumbnailer error codes.

    This is a string enum where each member is both an Enum and a str.
    """

    value: str


class ThumbnailerErrorCode(ErrorCodeBase):
    """Precise thumbnailer error codes (no generics).

    Convention:
    - Setup errors abort the run before any job starts.
    - Job errors are scoped to one file and become a failed outcome.
    - Report errors abort the run after every job has finished.
    """

    # Setup errors
    INVALID_CONFIG = "INVALID_CONFIG"
    CONFIG_UNREADABLE = "CONFIG_UNREADABLE"
    INVALID_CONCURRENCY = "INVALID_CONCURRENCY"
    INPUT_NOT_FOUND = "INPUT_NOT_FOUND"
    OUTPUT_UNWRITABLE = "OUTPUT_UNWRITABLE"

    # Job errors
    PREPROCESS_FAILED = "PREPROCESS_FAILED"
    DECODE_FAILED = "DECODE_FAILED"
    ENCODE_FAILED = "ENCODE_FAILED"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    SOURCE_UNREADABLE = "SOURCE_UNREADABLE"
    OUTPUT_WRITE_FAILED = "OUTPUT_WRITE_FAILED"

    # Report errors
    REPORT_WRITE_FAILED = "REPORT_WRITE_FAILED"


_ERROR_CODE_SCOPE: dict[ThumbnailerErrorCode, ErrorScope] = {
    ThumbnailerErrorCode.INVALID_CONFIG: "setup",
    ThumbnailerErrorCode.CONFIG_UNREADABLE: "setup",
    ThumbnailerErrorCode.INVALID_CONCURRENCY: "setup",
    ThumbnailerErrorCode.INPUT_NOT_FOUND: "setup",
    ThumbnailerErrorCode.OUTPUT_UNWRITABLE: "setup",
    ThumbnailerErrorCode.PREPROCESS_FAILED: "job",
    ThumbnailerErrorCode.DECODE_FAILED: "job",
    ThumbnailerErrorCode.ENCODE_FAILED: "job",
    ThumbnailerErrorCode.UNSUPPORTED_FORMAT: "job",
    ThumbnailerErrorCode.SOURCE_UNREADABLE: "job",
    ThumbnailerErrorCode.OUTPUT_WRITE_FAILED: "job",
    ThumbnailerErrorCode.REPORT_WRITE_FAILED: "report",
}


def scope_for(code: ThumbnailerErrorCode) -> ErrorScope:
    """Map an error code to the part of the run it aborts."""
    return _ERROR_CODE_SCOPE[code]


class ThumbnailerError(Exception):
    """Base thumbnailer error with a structured error code.

    Attributes:
        code: Machine-readable error code
        message: Human-readable error message
        scope: Which part of the run the error is fatal to

    Example:
        >>> raise ThumbnailerError(ThumbnailerErrorCode.INVALID_CONFIG, "width must be >= 0")
    """

    def __init__(self, code: ThumbnailerErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.scope: ErrorScope = scope_for(code)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class SetupError(ThumbnailerError):
    """Invalid configuration or environment; aborts before any job runs."""


class JobError(ThumbnailerError):
    """Failure scoped to a single job; retried per policy, then counted."""


class PreprocessingError(JobError):
    def __init__(self, message: str) -> None:
        super().__init__(ThumbnailerErrorCode.PREPROCESS_FAILED, message)


class DecodeError(JobError):
    def __init__(self, message: str) -> None:
        super().__init__(ThumbnailerErrorCode.DECODE_FAILED, message)


class EncodeError(JobError):
    def __init__(self, message: str) -> None:
        super().__init__(ThumbnailerErrorCode.ENCODE_FAILED, message)


class UnsupportedFormatError(JobError):
    """Unrecognised output format. Deterministic: every attempt fails the same way."""

    def __init__(self, output_format: str) -> None:
        super().__init__(
            ThumbnailerErrorCode.UNSUPPORTED_FORMAT,
            f"unsupported output format: {output_format}",
        )
        self.output_format = output_format


class FileIOError(JobError):
    """Missing or unreadable source, or an output file that cannot be written."""


class ReportWriteError(ThumbnailerError):
    def __init__(self, message: str) -> None:
        super().__init__(ThumbnailerErrorCode.REPORT_WRITE_FAILED, message)


__all__ = [
    "DecodeError",
    "EncodeError",
    "ErrorCodeBase",
    "ErrorScope",
    "FileIOError",
    "JobError",
    "PreprocessingError",
    "ReportWriteError",
    "SetupError",
    "ThumbnailerError",
    "ThumbnailerErrorCode",
    "UnsupportedFormatError",
    "scope_for",
]
