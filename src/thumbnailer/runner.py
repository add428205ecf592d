from __future__ import annotations

import time
from collections.abc import Callable

from .config import ThumbnailerSettings, prepare_output_dir, transform_options_from
from .logging import get_logger
from .pool import ConcurrencyController, OutcomeListener
from .preprocess import default_preprocessors
from .report import format_duration, render_from_stats, write_summary_report
from .retry import AttemptFn, RetryExecutor
from .source import build_jobs, enumerate_files
from .transform import TransformPipeline, resize_mode_for
from .types import SUPPORTED_FORMATS, BatchResult, Job, JobOutcome


def run_batch(
    settings: ThumbnailerSettings,
    *,
    attempt: AttemptFn | None = None,
    on_outcome: OutcomeListener | None = None,
    clock: Callable[[], float] = time.perf_counter,
) -> BatchResult:
    """Convert every file under the input path and write the summary report.

    Setup problems (bad dimensions, missing input, unwritable output) raise
    ``SetupError`` before any job starts. Per-job failures only show up in the
    counts and the log. A report that cannot be written raises
    ``ReportWriteError`` after all jobs have finished.

    ``attempt`` replaces the default Pillow pipeline for one job attempt.
    """
    logger = get_logger(__name__)
    resize_mode_for(settings["max_width"], settings["max_height"])
    if settings["output_format"] not in SUPPORTED_FORMATS:
        logger.warning(
            "Output format %r is not one of %s; every image will fail",
            settings["output_format"],
            ", ".join(SUPPORTED_FORMATS),
        )
    prepare_output_dir(settings["output_path"])
    options = transform_options_from(settings)
    jobs = build_jobs(enumerate_files(settings["input_path"]), options)

    run_attempt: AttemptFn
    if attempt is not None:
        run_attempt = attempt
    else:
        run_attempt = TransformPipeline(preprocessors=default_preprocessors()).run_job

    retry = RetryExecutor(max_attempts=settings["max_attempts"], clock=clock)

    def process(job: Job) -> JobOutcome:
        return retry.execute(job, run_attempt)

    controller = ConcurrencyController(on_outcome=on_outcome)

    logger.info(
        "Starting processing of %d images with parallelism=%d",
        len(jobs),
        settings["parallelism"],
    )
    started = clock()
    stats = controller.run(jobs, settings["parallelism"], process)
    elapsed = clock() - started

    logger.info("Finished processing images in %s", format_duration(elapsed))
    logger.info(
        "Successfully processed %d images, encountered %d errors",
        stats["success_count"],
        stats["error_count"],
    )

    report_path = write_summary_report(
        settings["output_path"], render_from_stats(stats, elapsed)
    )
    return {"stats": stats, "elapsed_seconds": elapsed, "report_path": report_path}


__all__ = ["run_batch"]
