from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

from .aggregator import ResultAggregator
from .errors import SetupError, ThumbnailerErrorCode
from .logging import get_logger
from .types import Job, JobOutcome, RunStats

ProcessFn = Callable[[Job], JobOutcome]
OutcomeListener = Callable[[JobOutcome], None]


class ConcurrencyController:
    """Bounded worker pool with a fork-join barrier.

    ``run`` submits every job to a thread pool of exactly ``limit`` workers, so
    no more than ``limit`` calls to ``process`` are ever in flight; a job waits
    for a free worker before it starts. The call returns only after every job
    has been recorded in the aggregator.
    """

    def __init__(self, *, on_outcome: OutcomeListener | None = None) -> None:
        self._on_outcome = on_outcome
        self._logger = get_logger(__name__)

    def run(self, jobs: Sequence[Job], limit: int, process: ProcessFn) -> RunStats:
        if limit < 1:
            raise SetupError(
                ThumbnailerErrorCode.INVALID_CONCURRENCY,
                f"concurrency limit must be >= 1, got {limit}",
            )
        aggregator = ResultAggregator(total=len(jobs))
        if not jobs:
            return aggregator.snapshot()

        def work(job: Job) -> JobOutcome:
            try:
                outcome = process(job)
            except Exception as exc:
                # Worker boundary: a defect in one job must not abort the run.
                self._logger.exception(
                    "Unexpected failure processing image %s",
                    job["path"],
                    extra={"path": str(job["path"])},
                )
                outcome = {
                    "status": "failure",
                    "path": job["path"],
                    "duration_seconds": 0.0,
                    "attempts": 0,
                    "error": f"{type(exc).__name__}: {exc}",
                    "output_path": None,
                }
            aggregator.record(outcome)
            return outcome

        with ThreadPoolExecutor(
            max_workers=limit, thread_name_prefix="thumbnailer"
        ) as pool:
            futures = [pool.submit(work, job) for job in jobs]
            for fut in as_completed(futures):
                if self._on_outcome is not None:
                    self._on_outcome(fut.result())

        return aggregator.snapshot()


__all__ = ["ConcurrencyController", "OutcomeListener", "ProcessFn"]
