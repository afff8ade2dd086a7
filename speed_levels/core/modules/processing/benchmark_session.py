"""
Benchmark session: runs a whole benchmark matrix and writes the report.

Dispatch units go to a bounded thread pool; completed units are consumed in
completion order by the calling thread, which is the only writer of the
aggregator. Fatal conditions and interrupts stop the remaining queue, but rows
aggregated so far are still written before the error propagates.
"""

import concurrent.futures
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..errors import DuplicateKeyError, OutputExistsError
from ..planning.job_matrix import BenchmarkJob, JobBatch, generate_jobs, group_jobs
from ..results.aggregator import AggregateRow, ResultAggregator
from ..results.report_writer import read_report, write_report
from ..settings import BenchSettings
from ..system.system_utils import (
    check_oversubscription, maybe_start_cpu_monitor, stop_cpu_monitor
)
from .hyperfine_runner import BatchOutcome, HyperfineRunner
from ....utils.logging import get_logger, create_progress_bar, format_duration

logger = get_logger("benchmark_session")


@dataclass
class SessionSummary:
    """What a finished (or aborted) session produced."""
    report_path: Optional[Path] = None
    rows: List[AggregateRow] = field(default_factory=list)
    jobs_planned: int = 0
    jobs_skipped: int = 0
    failed: List[Tuple[BenchmarkJob, str]] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    duplicates: int = 0
    elapsed: float = 0.0


class BenchmarkSession:
    """Drives one run from settings to report."""

    def __init__(self, settings: BenchSettings, runner: Optional[HyperfineRunner] = None,
                 probe: Optional[Callable] = None):
        self.settings = settings
        self.runner = runner or HyperfineRunner(settings)
        self.probe = probe
        self.aggregator = ResultAggregator(settings.tag)
        self.summary = SessionSummary()

    def _prepare_output(self) -> bool:
        """Check the report path up front; returns True when overwriting is allowed."""
        path = self.settings.report_path
        if not path.exists():
            return self.settings.overwrite
        if self.settings.resume:
            taken = self.aggregator.seed(read_report(path))
            logger.info(f"Resuming from {path}: {taken} rows already measured")
            return True
        if not self.settings.overwrite:
            raise OutputExistsError(path)
        return True

    def plan(self) -> List[BenchmarkJob]:
        """Generate the job list, dropping jobs a resumed report already covers."""
        jobs = generate_jobs(self.settings, probe=self.probe)
        self.summary.jobs_planned = len(jobs)
        pending = [job for job in jobs if self.aggregator.key_for(job) not in self.aggregator]
        self.summary.jobs_skipped = len(jobs) - len(pending)
        if self.summary.jobs_skipped:
            logger.info(f"Skipping {self.summary.jobs_skipped} jobs found in the existing report")
        return pending

    def run(self) -> SessionSummary:
        """Run the benchmark matrix and write the report.

        Raises:
            UnknownEncoderError, RunnerUnavailableError, RunnerFailedError,
            OutputExistsError, InvalidReportError, KeyboardInterrupt
        """
        start = time.time()
        overwrite = self._prepare_output()
        jobs = self.plan()

        if not jobs:
            self._flush(overwrite)
            self.summary.elapsed = time.time() - start
            return self.summary

        self.runner.ensure_available()
        batches = group_jobs(jobs, self.settings.tag, batch=self.settings.batch)
        check_oversubscription(self.settings.workers, self.settings.threads)
        logger.bench(f"{len(jobs)} jobs in {len(batches)} timing runs, "
                     f"{self.settings.runs} runs each, {self.settings.workers} worker(s)")

        monitor = maybe_start_cpu_monitor()
        try:
            self._dispatch(batches, len(jobs))
        except BaseException:
            if len(self.aggregator):
                logger.warn(f"Run aborted; writing {len(self.aggregator)} rows collected so far")
                try:
                    self._flush(overwrite)
                except (OSError, OutputExistsError) as flush_error:
                    logger.error(f"Could not write partial report: {flush_error}")
            raise
        finally:
            stop_cpu_monitor(monitor)
            self.summary.elapsed = time.time() - start

        self._flush(overwrite)
        logger.result(f"{len(self.summary.rows)} results in {format_duration(self.summary.elapsed)}")
        return self.summary

    def _dispatch(self, batches: List[JobBatch], total_jobs: int):
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=self.settings.workers)
        futures: Dict[concurrent.futures.Future, JobBatch] = {}
        consumed: Set[concurrent.futures.Future] = set()
        try:
            with create_progress_bar(total=total_jobs, desc="Benchmarking", unit="jobs") as progress:
                futures = {executor.submit(self.runner.run, batch): batch for batch in batches}
                for future in concurrent.futures.as_completed(futures):
                    consumed.add(future)
                    batch = futures[future]
                    self._collect(batch, future.result())
                    progress.update(len(batch))
        except BaseException as e:
            if isinstance(e, KeyboardInterrupt):
                logger.warn("Interrupted; stopping running benchmarks")
            self.runner.terminate_all()
            executor.shutdown(wait=True, cancel_futures=True)
            self._harvest(futures, consumed)
            raise
        executor.shutdown(wait=True)

    def _harvest(self, futures: Dict[concurrent.futures.Future, JobBatch],
                 consumed: Set[concurrent.futures.Future]):
        """Collect units that finished cleanly but were not consumed before an abort."""
        for future, batch in futures.items():
            if future in consumed or future.cancelled() or not future.done():
                continue
            if future.exception() is None:
                self._collect(batch, future.result())

    def _collect(self, batch: JobBatch, outcome: BatchOutcome):
        """Feed one unit's outcome into the aggregator; per-job problems are only logged."""
        if outcome.cancelled:
            logger.debug(f"{batch.export_name}: cancelled")
            return
        for job, reason in outcome.failed:
            logger.warn(f"{job.label}: {reason}; excluded from the report")
            self.summary.failed.append((job, reason))
        for problem in outcome.unparseable:
            logger.warn(f"{problem}; result dropped")
            self.summary.dropped.append(problem.label)
        for result in outcome.results:
            try:
                self.aggregator.add(result)
            except DuplicateKeyError as e:
                logger.warn(str(e))
                self.summary.duplicates += 1

    def _flush(self, overwrite: bool):
        rows = self.aggregator.rows()
        self.summary.rows = rows
        self.summary.report_path = write_report(rows, self.settings.report_path, overwrite=overwrite)


def run_benchmark(settings: BenchSettings, runner: Optional[HyperfineRunner] = None,
                  probe: Optional[Callable] = None) -> SessionSummary:
    """Convenience wrapper: run a full session with the given settings."""
    return BenchmarkSession(settings, runner=runner, probe=probe).run()
