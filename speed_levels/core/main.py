"""
Main benchmark orchestration module for speed_levels.

Parses the command line, builds the run settings and drives a
BenchmarkSession:
- Job matrix expansion over encoders, speed presets and inputs
- Timing with hyperfine
- Aggregation into a single CSV report
"""

import argparse
import shlex
import sys
from pathlib import Path
from typing import List, Optional

from ..config import get_config, default_tag
from ..utils.logging import (
    get_logger, set_debug_mode, set_quiet_mode, print_section_header, print_results_table
)
from .modules.errors import SpeedLevelsError, RunnerFailedError
from .modules.planning.command_builder import build_command
from .modules.planning.job_matrix import generate_jobs
from .modules.processing.benchmark_session import BenchmarkSession
from .modules.settings import (
    BenchSettings, DEFAULT_LIMIT, DEFAULT_OUTDIR, DEFAULT_RUNS, DEFAULT_THREADS, DEFAULT_WORKERS
)

logger = get_logger("speed_levels")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser(config: Optional[dict] = None) -> argparse.ArgumentParser:
    config = config if config is not None else get_config()
    parser = argparse.ArgumentParser(
        prog="speed-levels",
        description="Benchmark AV1 encoders across all speed presets with hyperfine",
    )
    parser.add_argument("inputs", metavar="INPUT", nargs="+", type=Path,
                        help="Input files")
    parser.add_argument("-e", "--encoders", action="append", type=Path, required=True,
                        help="Encoder path (repeatable): aomenc, rav1e or SvtAv1EncApp")
    parser.add_argument("-l", "--limit", type=int, default=DEFAULT_LIMIT,
                        help=f"Number of frames to encode (default: {DEFAULT_LIMIT})")
    parser.add_argument("-O", "--outdir", type=Path, default=DEFAULT_OUTDIR,
                        help="Output directory for the encoded files and reports (default: ~/Encoded)")
    parser.add_argument("-t", "--tag", default=None,
                        help="Descriptive tag (default: <hostname>-<machine>)")
    parser.add_argument("--show-output", action="store_true",
                        help="Print the stdout and stderr of the benchmark instead of suppressing it. "
                             "This increases the time benchmarks take, so only use it for debugging")
    parser.add_argument("-r", "--runs", type=int, default=DEFAULT_RUNS,
                        help=f"Perform exactly NUM runs for each command (default: {DEFAULT_RUNS})")
    parser.add_argument("-o", "--outname", default=None,
                        help="Filename of the aggregate report (default: <tag>-speed-levels.csv)")
    parser.add_argument("--threads", type=int, default=DEFAULT_THREADS,
                        help=f"Encoder thread pool size (default: {DEFAULT_THREADS})")
    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS,
                        help=f"Timing runs dispatched concurrently (default: {DEFAULT_WORKERS})")
    parser.add_argument("--extra-aom", default=config['extra_aom'],
                        help="Extra flags for the aom instances (env: EXTRA_AOM)")
    parser.add_argument("--extra-rav1e", default=config['extra_rav1e'],
                        help="Extra flags for the rav1e instances (env: EXTRA_RAV1E)")
    parser.add_argument("--extra-svt", default=config['extra_svt'],
                        help="Extra flags for the svt-av1 instances (env: EXTRA_SVT)")
    parser.add_argument("--runner", default=config['runner'],
                        help="Run each encoder through this command, e.g. 'taskset -c 0' "
                             "(env: RUNNER_COMMAND)")
    parser.add_argument("--hyperfine", default=config['hyperfine'],
                        help="hyperfine executable (env: HYPERFINE)")
    parser.add_argument("--no-batch", action="store_true",
                        help="Run hyperfine once per job instead of once per encoder and input")
    parser.add_argument("--no-probe", action="store_true",
                        help="Do not run the encoders to detect their versions")

    existing = parser.add_mutually_exclusive_group()
    existing.add_argument("--overwrite", action="store_true",
                          help="Replace an existing report")
    existing.add_argument("--resume", action="store_true",
                          help="Keep an existing report's rows and only run the missing jobs")

    parser.add_argument("--dry-run", action="store_true",
                        help="Print the commands that would be timed and exit")
    parser.add_argument("--debug", action="store_true", default=config['debug'],
                        help="Enable debug output")
    parser.add_argument("--quiet", action="store_true", help="Only print warnings and errors")
    return parser


def settings_from_args(args: argparse.Namespace) -> BenchSettings:
    """Turn parsed arguments into the immutable run settings."""
    return BenchSettings(
        encoders=args.encoders or [],
        inputs=args.inputs or [],
        tag=args.tag or default_tag(),
        limit=args.limit,
        runs=args.runs,
        outdir=args.outdir,
        outname=args.outname,
        threads=args.threads,
        workers=args.workers,
        extra_flags={
            "aom": args.extra_aom,
            "rav1e": args.extra_rav1e,
            "svt-av1": args.extra_svt,
        },
        runner=args.runner,
        show_output=args.show_output,
        batch=not args.no_batch,
        overwrite=args.overwrite,
        resume=args.resume,
        probe=not args.no_probe,
        hyperfine=args.hyperfine,
    )


def print_run_header(settings: BenchSettings):
    print_section_header(f"SPEED LEVELS - {settings.tag}")
    logger.info(f"Encoders: {', '.join(str(e) for e in settings.encoders)}")
    logger.info(f"Inputs: {len(settings.inputs)} file(s), {settings.limit} frames each")
    logger.info(f"Runs per command: {settings.runs}, encoder threads: {settings.threads}")
    if settings.runner:
        logger.info(f"Runner: {shlex.join(settings.runner)}")
    logger.info(f"Report: {settings.report_path}")


def dry_run(settings: BenchSettings) -> int:
    """Print every command the run would time."""
    jobs = generate_jobs(settings)
    print(f"\n[DRY-RUN] {len(jobs)} commands would be timed:")
    for job in jobs:
        print(f"  {build_command(job).shell_string}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        set_debug_mode(True)
    if args.quiet:
        set_quiet_mode(True)

    try:
        settings = settings_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    session = None
    try:
        print_run_header(settings)
        if args.dry_run:
            return dry_run(settings)

        settings.outdir.mkdir(parents=True, exist_ok=True)
        session = BenchmarkSession(settings)
        summary = session.run()
    except KeyboardInterrupt:
        logger.error("Interrupted")
        _report_partial(session)
        return EXIT_INTERRUPTED
    except SpeedLevelsError as e:
        logger.error(str(e))
        if isinstance(e, RunnerFailedError):
            _report_partial(session)
        return EXIT_FAILURE
    except OSError as e:
        logger.error(f"{e}")
        _report_partial(session)
        return EXIT_FAILURE

    print_results_table(summary.rows)
    if summary.failed or summary.dropped:
        logger.warn(f"{len(summary.failed)} failed and {len(summary.dropped)} unparseable jobs "
                    f"were left out of the report")
    logger.report(f"Results in: {summary.report_path}")
    return EXIT_OK


def _report_partial(session: Optional[BenchmarkSession]):
    if session is not None and session.summary.report_path is not None:
        logger.report(f"Partial results ({len(session.summary.rows)} rows) in: "
                      f"{session.summary.report_path}")


if __name__ == "__main__":
    sys.exit(main())
