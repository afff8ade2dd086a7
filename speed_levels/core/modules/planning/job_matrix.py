"""
Job matrix generation.

Expands (encoders x speed presets x inputs) into an ordered list of
BenchmarkJobs: encoders in the given order, presets ascending, inputs in the
given order. Encoder resolution happens up front so an unrecognized encoder
aborts the run before any process is started.
"""

import hashlib
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..encoders.profiles import EncoderProfile, resolve_profile
from ..encoders.version_probe import EncoderInfo, probe_encoder, no_probe, UNKNOWN_VERSION
from ..settings import BenchSettings, REPORT_SUFFIX
from ....utils.logging import get_logger

logger = get_logger("job_matrix")

ProbeFn = Callable[[Path, EncoderProfile], EncoderInfo]


@dataclass(frozen=True)
class BenchmarkJob:
    """One encoder run to be timed: encoder x speed preset x input."""
    encoder: Path
    profile: EncoderProfile
    speed: int
    input_file: Path
    output_file: Path
    limit: int
    threads: int
    runs: int
    runner: Tuple[str, ...] = ()
    extra_flags: Tuple[str, ...] = ()
    show_output: bool = False
    version: str = UNKNOWN_VERSION
    overwrite_supported: bool = False
    input_name: str = ""

    def __post_init__(self):
        if not self.profile.supports_speed(self.speed):
            raise ValueError(f"Speed {self.speed} outside {self.profile.name} range "
                             f"{self.profile.min_speed}-{self.profile.max_speed}")
        if self.runs < 1:
            raise ValueError("runs must be at least 1")

    @property
    def family(self) -> str:
        return self.profile.name

    @property
    def input_identity(self) -> str:
        return str(self.input_file)

    @property
    def input_label(self) -> str:
        """Short name of the input, unique within the run."""
        return self.input_name or self.input_file.stem

    @property
    def label(self) -> str:
        """Unique, human-readable name for this job within a run."""
        return f"{self.profile.short_name}-{self.version}-s{self.speed}-{self.input_label}"

    @property
    def group_key(self) -> Tuple[str, str]:
        return str(self.encoder), str(self.input_file)


@dataclass(frozen=True)
class JobBatch:
    """Jobs timed by one invocation of the timing tool."""
    jobs: Tuple[BenchmarkJob, ...]
    export_name: str

    def __len__(self):
        return len(self.jobs)


def input_names(inputs: Sequence[Path]) -> Dict[Path, str]:
    """Short name per input for labels and file names, unique within the run.

    Inputs are named by their stem; inputs that share a stem with a different
    path also get a short hash of their full path.
    """
    stems = Counter(path.stem for path in set(inputs))
    names = {}
    for path in inputs:
        if stems[path.stem] > 1:
            digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:8]
            names[path] = f"{path.stem}-{digest}"
        else:
            names[path] = path.stem
    return names


def output_path(outdir: Path, profile: EncoderProfile, version: str,
                input_name: str, speed: int, limit: int) -> Path:
    """Encoded bitstream location for one job."""
    return outdir / f"{input_name}-{profile.short_name}-{version}-{speed}-l{limit}.ivf"


def resolve_encoders(encoders: Sequence[Path]) -> List[Tuple[Path, EncoderProfile]]:
    """Resolve every encoder path, failing on the first unknown one."""
    return [(Path(encoder), resolve_profile(encoder)) for encoder in encoders]


def generate_jobs(settings: BenchSettings, probe: Optional[ProbeFn] = None) -> List[BenchmarkJob]:
    """Build the ordered benchmark matrix for a run.

    Args:
        settings: Run settings
        probe: Encoder probe; defaults to probing the binaries, or to no probing
            when ``settings.probe`` is False

    Returns:
        List of jobs; empty when there are no encoders or no inputs.

    Raises:
        UnknownEncoderError: an encoder path matches no supported family
    """
    resolved = resolve_encoders(settings.encoders)
    if not resolved or not settings.inputs:
        logger.info("No encoders or no inputs given; nothing to benchmark")
        return []

    if probe is None:
        probe = probe_encoder if settings.probe else no_probe

    infos: Dict[Path, EncoderInfo] = {}
    for encoder, profile in resolved:
        if encoder not in infos:
            infos[encoder] = probe(encoder, profile)

    names = input_names(settings.inputs)
    jobs = []
    for encoder, profile in resolved:
        info = infos[encoder]
        for speed in profile.speeds:
            for input_file in settings.inputs:
                jobs.append(BenchmarkJob(
                    encoder=encoder,
                    profile=profile,
                    speed=speed,
                    input_file=input_file,
                    output_file=output_path(settings.outdir, profile, info.version,
                                            names[input_file], speed, settings.limit),
                    limit=settings.limit,
                    threads=settings.threads,
                    runs=settings.runs,
                    runner=settings.runner,
                    extra_flags=settings.extra_flags_for(profile),
                    show_output=settings.show_output,
                    version=info.version,
                    overwrite_supported=info.overwrite_supported,
                    input_name=names[input_file],
                ))

    logger.debug(f"Generated {len(jobs)} jobs for {len(resolved)} encoders "
                 f"and {len(settings.inputs)} inputs")
    return jobs


def export_name(job: BenchmarkJob, tag: str, per_job: bool = False) -> str:
    """Base name of the timing tool's export files for a job or its batch."""
    name = (f"{tag}-{job.profile.short_name}-{job.version}-{REPORT_SUFFIX}-"
            f"{job.input_label}-l{job.limit}")
    return f"{name}-s{job.speed}" if per_job else name


def group_jobs(jobs: Sequence[BenchmarkJob], tag: str, batch: bool = True) -> List[JobBatch]:
    """Split jobs into dispatch units.

    With ``batch`` set, all presets of one (encoder, input) pair share a timing
    tool invocation; otherwise each job is its own unit. Unit order follows the
    first appearance of each group in ``jobs``.
    """
    if not batch:
        return [JobBatch((job,), export_name(job, tag, per_job=True)) for job in jobs]

    groups: Dict[Tuple[str, str], List[BenchmarkJob]] = {}
    for job in jobs:
        groups.setdefault(job.group_key, []).append(job)
    return [JobBatch(tuple(group), export_name(group[0], tag)) for group in groups.values()]
