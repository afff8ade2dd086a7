"""Shared fixtures for speed_levels tests."""

import json
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence
from unittest.mock import MagicMock

from speed_levels.core.modules.encoders.profiles import AOM, EncoderProfile
from speed_levels.core.modules.encoders.version_probe import EncoderInfo
from speed_levels.core.modules.planning.job_matrix import BenchmarkJob
from speed_levels.core.modules.processing.hyperfine_runner import TimingResult


def make_job(profile: EncoderProfile = AOM, speed: int = 4, encoder: str = "aomenc",
             input_file: str = "clip.y4m", **overrides) -> BenchmarkJob:
    values = dict(
        encoder=Path(encoder),
        profile=profile,
        speed=speed,
        input_file=Path(input_file),
        output_file=Path("out") / f"clip-{profile.short_name}-{speed}.ivf",
        limit=10,
        threads=16,
        runs=2,
    )
    values.update(overrides)
    return BenchmarkJob(**values)


def make_result(job: BenchmarkJob, mean: float = 1.5, stddev: Optional[float] = 0.1,
                runs: int = 2) -> TimingResult:
    return TimingResult(job=job, command="aomenc --cpu-used=4", mean=mean,
                        stddev=stddev, runs=runs, median=mean, min=mean - 0.1,
                        max=mean + 0.1, user=mean * 4, system=0.05)


def fixed_probe(version: str = "3.8.0", overwrite_supported: bool = False):
    """Probe replacement returning a fixed version without running anything."""
    def probe(encoder, profile):
        return EncoderInfo(version=version, overwrite_supported=overwrite_supported)
    return probe


def command_names(argv: Sequence[str]) -> List[str]:
    return [argv[i + 1] for i, arg in enumerate(argv) if arg == "--command-name"]


class FakeHyperfine:
    """Stands in for subprocess.Popen and writes a JSON export the way hyperfine does.

    Args:
        returncodes: hyperfine exit status per invocation (default 0)
        failing: command names whose exit codes are reported as non-zero
        entries: per-name overrides merged into the exported result entry
        raise_on_call: invocation index (0-based) that raises the given exception
        on_call: called with the argv of each invocation once it has finished
    """

    def __init__(self, returncodes: Optional[List[int]] = None, failing: Sequence[str] = (),
                 entries: Optional[Dict[str, dict]] = None, write_export: bool = True,
                 raise_on_call: Optional[int] = None, exception: BaseException = None,
                 on_call: Optional[Callable[[List[str]], None]] = None):
        self.returncodes = returncodes or []
        self.failing = set(failing)
        self.entries = entries or {}
        self.write_export = write_export
        self.raise_on_call = raise_on_call
        self.exception = exception
        self.on_call = on_call
        self.calls: List[List[str]] = []

    def _entry(self, name: str, runs: int, index: int) -> dict:
        mean = 1.0 + index * 0.25
        entry = {
            "command": name,
            "mean": mean,
            "stddev": 0.05,
            "median": mean,
            "user": mean * 3,
            "system": 0.02,
            "min": mean - 0.05,
            "max": mean + 0.05,
            "times": [mean] * runs,
            "exit_codes": [1 if name in self.failing else 0] * runs,
        }
        entry.update(self.entries.get(name, {}))
        return entry

    def __call__(self, argv, **kwargs):
        call_index = len(self.calls)
        self.calls.append(list(argv))
        if self.raise_on_call is not None and call_index == self.raise_on_call:
            raise self.exception

        returncode = self.returncodes[call_index] if call_index < len(self.returncodes) else 0
        if self.write_export and returncode == 0:
            runs = int(argv[argv.index("--runs") + 1])
            export = Path(argv[argv.index("--export-json") + 1])
            results = [self._entry(name, runs, i) for i, name in enumerate(command_names(argv))]
            export.write_text(json.dumps({"results": results}), encoding="utf-8")

        if self.on_call is not None:
            self.on_call(list(argv))

        process = MagicMock()
        process.communicate.return_value = ("", "hyperfine: error" if returncode else "")
        process.returncode = returncode
        process.pid = 4242
        return process
