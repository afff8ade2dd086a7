"""Immutable run settings threaded through the benchmark pipeline."""

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple, Union

from .encoders.profiles import EncoderProfile, get_profile
from .errors import UnknownEncoderError

DEFAULT_LIMIT = 10
DEFAULT_RUNS = 2
DEFAULT_THREADS = 16
DEFAULT_WORKERS = 1
DEFAULT_OUTDIR = Path("~/Encoded")
REPORT_SUFFIX = "speed-levels"

Flags = Union[str, Sequence[str], None]


def split_flags(flags: Flags, what: str = "flags") -> Tuple[str, ...]:
    """Tokenize a user supplied flag string the way a shell would.

    Sequences are taken as already tokenized.

    Raises:
        ValueError: the string has unbalanced quotes or a dangling escape
    """
    if not flags:
        return ()
    if not isinstance(flags, str):
        return tuple(str(token) for token in flags)
    try:
        return tuple(shlex.split(flags))
    except ValueError as e:
        raise ValueError(f"Cannot parse {what} {flags!r}: {e}") from None


@dataclass(frozen=True)
class BenchSettings:
    """Everything one benchmarking run needs, fixed for the run's duration.

    ``runner`` and ``extra_flags`` may be given as shell-style strings; they are
    stored tokenized so building a command can never fail on them.
    """
    encoders: Sequence[Union[str, Path]] = ()
    inputs: Sequence[Union[str, Path]] = ()
    tag: str = "bench"
    limit: int = DEFAULT_LIMIT
    runs: int = DEFAULT_RUNS
    outdir: Path = DEFAULT_OUTDIR
    outname: Optional[str] = None
    threads: int = DEFAULT_THREADS
    workers: int = DEFAULT_WORKERS
    extra_flags: Mapping[str, Flags] = field(default_factory=dict)
    runner: Flags = ()
    show_output: bool = False
    batch: bool = True
    overwrite: bool = False
    resume: bool = False
    probe: bool = True
    hyperfine: str = "hyperfine"

    def __post_init__(self):
        for name in ("limit", "runs", "threads", "workers"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.overwrite and self.resume:
            raise ValueError("overwrite and resume are mutually exclusive")

        # Normalize containers so the settings value really is immutable
        object.__setattr__(self, "encoders", tuple(Path(e) for e in self.encoders))
        object.__setattr__(self, "inputs", tuple(Path(i) for i in self.inputs))
        object.__setattr__(self, "outdir", Path(self.outdir).expanduser())
        object.__setattr__(self, "runner", split_flags(self.runner, "runner command"))
        flags = {}
        for family, value in dict(self.extra_flags).items():
            try:
                key = get_profile(family).name
            except UnknownEncoderError:
                raise ValueError(f"Unknown encoder family for extra flags: {family}") from None
            flags[key] = split_flags(value, f"extra {key} flags")
        object.__setattr__(self, "extra_flags", MappingProxyType(flags))

    def extra_flags_for(self, profile: EncoderProfile) -> Tuple[str, ...]:
        return self.extra_flags.get(profile.name, ())

    @property
    def report_name(self) -> str:
        return self.outname or f"{self.tag}-{REPORT_SUFFIX}.csv"

    @property
    def report_path(self) -> Path:
        name = Path(self.report_name).expanduser()
        return name if name.is_absolute() else self.outdir / name

    @property
    def export_dir(self) -> Path:
        """Where the raw hyperfine exports are kept."""
        return self.outdir / "hyperfine"
