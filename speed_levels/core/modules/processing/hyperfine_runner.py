"""
hyperfine adapter.

Times the rendered commands of one dispatch unit with a single hyperfine
invocation and turns its JSON export into TimingResults:

    hyperfine --runs N --ignore-failure [--show-output]
              --export-json F.json --export-csv F.csv --export-markdown F.md
              --command-name LABEL 'CMD' [--command-name LABEL 'CMD' ...]

``--ignore-failure`` keeps hyperfine going when one encoder command fails; the
failure shows up in that command's ``exit_codes`` and only that job is dropped.
A non-zero exit of hyperfine itself aborts the run.
"""

import json
import shutil
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import JobResultUnparseable, RunnerFailedError, RunnerUnavailableError
from ..planning.command_builder import RenderedCommand, build_command
from ..planning.job_matrix import BenchmarkJob, JobBatch
from ..settings import BenchSettings
from ..system.system_utils import terminate_process_tree
from ....utils.logging import get_logger

logger = get_logger("hyperfine_runner")

EXPORT_FORMATS = ("json", "csv", "markdown")
_EXPORT_SUFFIX = {"json": ".json", "csv": ".csv", "markdown": ".md"}


@dataclass(frozen=True)
class TimingResult:
    """Statistics for one command, in seconds."""
    job: BenchmarkJob
    command: str
    mean: float
    stddev: Optional[float]
    runs: int
    median: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    user: Optional[float] = None
    system: Optional[float] = None

    def __post_init__(self):
        if self.runs < 1:
            raise ValueError(f"{self.job.label}: a timing result needs at least one run")


@dataclass
class BatchOutcome:
    """What one timing tool invocation produced."""
    results: List[TimingResult] = field(default_factory=list)
    failed: List[Tuple[BenchmarkJob, str]] = field(default_factory=list)
    unparseable: List[JobResultUnparseable] = field(default_factory=list)
    cancelled: bool = False


def export_path(export_base: Path, fmt: str) -> Path:
    # Export names carry version strings with dots, so never use with_suffix
    return export_base.parent / f"{export_base.name}{_EXPORT_SUFFIX[fmt]}"


def _optional_float(entry: Dict[str, Any], key: str) -> Optional[float]:
    value = entry.get(key)
    return None if value is None else float(value)


class HyperfineRunner:
    """Runs dispatch units through hyperfine; safe to share between worker threads."""

    def __init__(self, settings: BenchSettings, export_dir: Optional[Path] = None):
        self.binary = settings.hyperfine
        self.runs = settings.runs
        self.show_output = settings.show_output
        self.export_dir = Path(export_dir) if export_dir else settings.export_dir
        self._active: set[subprocess.Popen] = set()
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    def ensure_available(self) -> str:
        """Return the resolved hyperfine path or raise RunnerUnavailableError."""
        located = shutil.which(self.binary)
        if located is None:
            raise RunnerUnavailableError(self.binary)
        logger.debug(f"Using timing tool {located}")
        return located

    def build_invocation(self, commands: Sequence[RenderedCommand], export_base: Path) -> List[str]:
        argv = [self.binary, "--runs", str(self.runs), "--ignore-failure"]
        if self.show_output:
            argv.append("--show-output")
        for fmt in EXPORT_FORMATS:
            argv.extend([f"--export-{fmt}", str(export_path(export_base, fmt))])
        for command in commands:
            argv.extend(["--command-name", command.label])
        argv.extend(command.shell_string for command in commands)
        return argv

    def run(self, batch: JobBatch) -> BatchOutcome:
        """Time every job of a dispatch unit.

        Raises:
            RunnerUnavailableError: hyperfine could not be launched
            RunnerFailedError: hyperfine exited with a failure status
        """
        commands = [build_command(job) for job in batch.jobs]
        if self._cancelled.is_set():
            return BatchOutcome(cancelled=True)

        self.export_dir.mkdir(parents=True, exist_ok=True)
        export_base = self.export_dir / batch.export_name
        for command in commands:
            logger.cmd(command.shell_string)

        if not self._execute(self.build_invocation(commands, export_base)):
            return BatchOutcome(cancelled=True)
        return self.parse_export(commands, export_path(export_base, "json"))

    def _execute(self, argv: List[str]) -> bool:
        """Run hyperfine to completion. Returns False when cancelled mid-run."""
        pipe = None if self.show_output else subprocess.PIPE
        try:
            process = subprocess.Popen(argv, stdout=pipe, stderr=pipe, text=True)
        except FileNotFoundError as e:
            raise RunnerUnavailableError(self.binary, str(e)) from e

        with self._lock:
            self._active.add(process)
        try:
            stdout, stderr = process.communicate()
        finally:
            with self._lock:
                self._active.discard(process)

        if stdout:
            logger.debug(stdout.strip())
        if process.returncode != 0:
            # A terminated run exits non-zero; only a clean exit keeps its export
            if self._cancelled.is_set():
                return False
            raise RunnerFailedError(self.binary, process.returncode, stderr)
        return True

    def parse_export(self, commands: Sequence[RenderedCommand], json_file: Path) -> BatchOutcome:
        """Match hyperfine's JSON export entries back to the commands that produced them."""
        outcome = BatchOutcome()
        try:
            with open(json_file, "r", encoding="utf-8") as f:
                entries = json.load(f)["results"]
            if not isinstance(entries, list):
                raise TypeError("'results' is not a list")
        except (OSError, ValueError, KeyError, TypeError) as e:
            for command in commands:
                outcome.unparseable.append(
                    JobResultUnparseable(command.label, f"cannot read {json_file.name}: {e}"))
            return outcome

        for index, command in enumerate(commands):
            entry = entries[index] if index < len(entries) else None
            try:
                result = self._parse_entry(command, entry)
            except JobResultUnparseable as e:
                outcome.unparseable.append(e)
                continue
            if isinstance(result, str):
                outcome.failed.append((command.job, result))
            else:
                outcome.results.append(result)
        return outcome

    def _parse_entry(self, command: RenderedCommand, entry: Any) -> "TimingResult | str":
        """Return a TimingResult, or a failure reason string for a failed command."""
        if not isinstance(entry, dict):
            raise JobResultUnparseable(command.label, "missing from export")
        name = entry.get("command")
        if name not in (command.label, command.shell_string):
            raise JobResultUnparseable(command.label, f"export entry belongs to {name!r}")

        exit_codes = entry.get("exit_codes") or []
        if any(code != 0 for code in exit_codes):
            return f"encoder exited with codes {exit_codes}"

        times = entry.get("times") or []
        runs = len(times) or self.runs
        try:
            mean = float(entry["mean"])
            stddev = _optional_float(entry, "stddev")
            if stddev is None and runs > 1:
                raise KeyError("stddev")
            return TimingResult(
                job=command.job,
                command=command.shell_string,
                mean=mean,
                stddev=stddev,
                runs=runs,
                median=_optional_float(entry, "median"),
                min=_optional_float(entry, "min"),
                max=_optional_float(entry, "max"),
                user=_optional_float(entry, "user"),
                system=_optional_float(entry, "system"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise JobResultUnparseable(command.label, f"bad statistics: {e!r}") from e

    def terminate_all(self):
        """Stop in-flight hyperfine processes and refuse new work."""
        self._cancelled.set()
        with self._lock:
            processes = list(self._active)
        for process in processes:
            logger.warn(f"Terminating timing tool (pid {process.pid})")
            terminate_process_tree(process)
