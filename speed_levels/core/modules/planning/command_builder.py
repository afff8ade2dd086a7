"""
Command construction for benchmark jobs.

Turns a BenchmarkJob into the exact argument vector the timing tool runs:

    [runner tokens...] encoder <tiles> <threads> <limit> <speed> <io> [extra flags...]

Rendering is pure and cannot fail: runner and extra flags arrive already
tokenized, and the same job always yields the same vector.
"""

import shlex
from dataclasses import dataclass
from typing import Tuple

from .job_matrix import BenchmarkJob


@dataclass(frozen=True)
class RenderedCommand:
    """Fully formed argument vector for one job."""
    job: BenchmarkJob
    argv: Tuple[str, ...]

    @property
    def shell_string(self) -> str:
        """The vector quoted for a POSIX shell, as the timing tool expects."""
        return shlex.join(self.argv)

    @property
    def label(self) -> str:
        return self.job.label


def build_argv(job: BenchmarkJob) -> Tuple[str, ...]:
    profile = job.profile
    argv = list(job.runner)
    argv.append(str(job.encoder))
    argv.extend(profile.render_flags(job.speed, job.limit, job.threads))
    argv.extend(profile.render_io(job.input_file, job.output_file, job.overwrite_supported))
    argv.extend(job.extra_flags)
    return tuple(argv)


def build_command(job: BenchmarkJob) -> RenderedCommand:
    """Render a job into its command."""
    return RenderedCommand(job=job, argv=build_argv(job))
