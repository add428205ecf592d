from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import Final

from .errors import JobError, SetupError, ThumbnailerErrorCode
from .logging import get_logger
from .report import format_duration
from .types import Job, JobOutcome, RetryPolicy

# Job-scoped failures. Anything else is a defect and propagates to the worker boundary.
_JOB_ERRORS: Final[tuple[type[Exception], ...]] = (JobError, OSError, ValueError)

AttemptFn = Callable[[Job], Path]


def _describe(exc: Exception) -> str:
    if isinstance(exc, JobError):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"


class RetryExecutor:
    """Run one job up to ``max_attempts`` times, sequentially and without delay.

    The first successful attempt ends the sequence; its duration alone is kept.
    When every attempt fails the outcome carries the last error only, while each
    intermediate failure is logged.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 1,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if int(max_attempts) < 1:
            raise SetupError(
                ThumbnailerErrorCode.INVALID_CONFIG,
                f"max attempts must be >= 1, got {max_attempts}",
            )
        self._max_attempts = int(max_attempts)
        self._clock = clock
        self._logger = get_logger(__name__)

    @classmethod
    def from_policy(cls, policy: RetryPolicy) -> RetryExecutor:
        return cls(max_attempts=policy["max_attempts"])

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def execute(self, job: Job, attempt: AttemptFn) -> JobOutcome:
        path = job["path"]
        last_error = ""
        for n in range(1, self._max_attempts + 1):
            started = self._clock()
            try:
                output_path = attempt(job)
            except _JOB_ERRORS as exc:
                last_error = _describe(exc)
                code = exc.code.value if isinstance(exc, JobError) else type(exc).__name__
                self._logger.warning(
                    "Error processing image %s (attempt %d/%d): %s",
                    path,
                    n,
                    self._max_attempts,
                    last_error,
                    extra={"path": str(path), "attempt": n, "error_code": code},
                )
                continue
            duration = self._clock() - started
            self._logger.info(
                "Finished processing image %s in %s",
                path,
                format_duration(duration),
                extra={"path": str(path), "attempt": n, "duration_ms": round(duration * 1000, 3)},
            )
            return {
                "status": "success",
                "path": path,
                "duration_seconds": duration,
                "attempts": n,
                "error": None,
                "output_path": output_path,
            }

        self._logger.error(
            "Giving up on image %s after %d attempt(s): %s",
            path,
            self._max_attempts,
            last_error,
            extra={"path": str(path), "attempt": self._max_attempts},
        )
        return {
            "status": "failure",
            "path": path,
            "duration_seconds": 0.0,
            "attempts": self._max_attempts,
            "error": last_error,
            "output_path": None,
        }


__all__ = ["AttemptFn", "RetryExecutor"]
