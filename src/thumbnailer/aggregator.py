from __future__ import annotations

import threading

from .types import JobOutcome, RunStats


class ResultAggregator:
    """Thread-safe accumulator of job outcomes for one run.

    Each ``record`` call updates the counters and the duration sequence under a
    single lock, so concurrent workers never lose an update. Durations are kept
    in the order ``record`` acquires the lock, which is completion order.
    """

    def __init__(self, total: int) -> None:
        self._lock = threading.Lock()
        self._total = max(0, int(total))
        self._success_count = 0
        self._error_count = 0
        self._durations: list[float] = []

    def record(self, outcome: JobOutcome) -> None:
        with self._lock:
            if outcome["status"] == "success":
                self._success_count += 1
                self._durations.append(outcome["duration_seconds"])
            else:
                self._error_count += 1

    @property
    def recorded(self) -> int:
        with self._lock:
            return self._success_count + self._error_count

    def snapshot(self) -> RunStats:
        """Return a copy of the current counters; safe to call at any time."""
        with self._lock:
            return {
                "total": self._total,
                "success_count": self._success_count,
                "error_count": self._error_count,
                "durations": list(self._durations),
            }


__all__ = ["ResultAggregator"]
