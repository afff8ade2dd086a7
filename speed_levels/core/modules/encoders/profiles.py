"""
Encoder profiles: static knowledge about each supported AV1 encoder family.

Every family shares the same rendering surface (``render_flags`` and
``render_io``) so the command builder never branches on the encoder name.
Adding a family means adding a subclass and registering it in ``PROFILES``.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..errors import UnknownEncoderError

# Every benchmarked job encodes with a fixed 4x4 tile layout.
TILE_ROWS = 4
TILE_COLUMNS = 4
TILE_ROWS_LOG2 = 2
TILE_COLUMNS_LOG2 = 2


@dataclass(frozen=True)
class EncoderProfile:
    """Base profile; concrete families override the render methods."""
    name: str
    short_name: str
    min_speed: int
    max_speed: int
    identifiers: Tuple[str, ...] = field(default=())

    # How to ask the binary for its version: (arguments, stream, pattern)
    version_args: Tuple[str, ...] = field(default=())
    version_stream: str = "stdout"
    version_pattern: str = ""

    def __post_init__(self):
        if self.min_speed < 0 or self.max_speed < 0:
            raise ValueError(f"{self.name}: speed bounds must be non-negative")
        if self.min_speed > self.max_speed:
            raise ValueError(f"{self.name}: empty speed range {self.min_speed}-{self.max_speed}")

    @property
    def speeds(self) -> range:
        return range(self.min_speed, self.max_speed + 1)

    def supports_speed(self, speed: int) -> bool:
        return self.min_speed <= speed <= self.max_speed

    def matches(self, encoder: Union[str, Path]) -> bool:
        """True when the encoder's file name contains one of our identifiers."""
        stem = Path(encoder).name.lower()
        return any(identifier in stem for identifier in self.identifiers)

    def render_flags(self, speed: int, limit: int, threads: int) -> List[str]:
        raise NotImplementedError

    def render_io(self, input_file: Path, output_file: Path,
                  overwrite_supported: bool = False) -> List[str]:
        raise NotImplementedError

    def parse_version(self, output: str) -> Optional[str]:
        match = re.search(self.version_pattern, output or "")
        return match.group(1) if match else None


@dataclass(frozen=True)
class AomProfile(EncoderProfile):
    """libaom's aomenc."""

    def render_flags(self, speed: int, limit: int, threads: int) -> List[str]:
        return [
            f"--tile-rows={TILE_ROWS_LOG2}",
            f"--tile-columns={TILE_COLUMNS_LOG2}",
            f"--threads={threads}",
            f"--limit={limit}",
            f"--cpu-used={speed}",
        ]

    def render_io(self, input_file: Path, output_file: Path,
                  overwrite_supported: bool = False) -> List[str]:
        return ["-o", str(output_file), str(input_file)]


@dataclass(frozen=True)
class Rav1eProfile(EncoderProfile):
    """rav1e; asks for -y when the binary supports overwriting."""

    def render_flags(self, speed: int, limit: int, threads: int) -> List[str]:
        return [
            "--tiles", str(TILE_ROWS * TILE_COLUMNS),
            "--threads", str(threads),
            "-l", str(limit),
            "-s", str(speed),
        ]

    def render_io(self, input_file: Path, output_file: Path,
                  overwrite_supported: bool = False) -> List[str]:
        io = ["-o", str(output_file), str(input_file)]
        if overwrite_supported:
            io.append("-y")
        return io

    def parse_version(self, output: str) -> Optional[str]:
        match = re.search(self.version_pattern, output or "")
        if not match:
            return None
        nominal, specific = match.group(1), match.group(2)
        return nominal if specific == "UNKNOWN" else specific


@dataclass(frozen=True)
class SvtAv1Profile(EncoderProfile):
    """SVT-AV1's SvtAv1EncApp."""

    def render_flags(self, speed: int, limit: int, threads: int) -> List[str]:
        return [
            "--tile-rows", str(TILE_ROWS_LOG2),
            "--tile-columns", str(TILE_COLUMNS_LOG2),
            "--lp", str(threads),
            "-n", str(limit),
            "--preset", str(speed),
        ]

    def render_io(self, input_file: Path, output_file: Path,
                  overwrite_supported: bool = False) -> List[str]:
        return ["-b", str(output_file), "-i", str(input_file)]


AOM = AomProfile(
    name="aom", short_name="aom", min_speed=0, max_speed=8,
    identifiers=("aomenc", "aom"),
    version_args=("--help",), version_stream="stdout",
    version_pattern=r"av1    - AOMedia Project AV1 Encoder (\S+) ",
)

RAV1E = Rav1eProfile(
    name="rav1e", short_name="rav1e", min_speed=0, max_speed=10,
    identifiers=("rav1e",),
    version_args=("--version",), version_stream="stdout",
    version_pattern=r"rav1e (\S+) \((\S+)\)",
)

SVT_AV1 = SvtAv1Profile(
    name="svt-av1", short_name="svt", min_speed=0, max_speed=8,
    identifiers=("svtav1encapp", "svt-av1", "svt_av1", "svt"),
    version_args=(), version_stream="stderr",
    version_pattern=r"SVT \[version\]:\s*SVT-AV1 Encoder Lib (\S+)\s",
)

PROFILES: Tuple[EncoderProfile, ...] = (AOM, RAV1E, SVT_AV1)

# Extra-flag settings are keyed by family name; accept the short names too.
FAMILY_ALIASES = {
    "aom": "aom",
    "rav1e": "rav1e",
    "svt": "svt-av1",
    "svt-av1": "svt-av1",
}


def resolve_profile(encoder: Union[str, Path]) -> EncoderProfile:
    """Return the profile matching an encoder path, or raise UnknownEncoderError."""
    for profile in PROFILES:
        if profile.matches(encoder):
            return profile
    raise UnknownEncoderError(encoder)


def get_profile(name: str) -> EncoderProfile:
    """Look up a profile by family name (aom, rav1e, svt-av1 or svt)."""
    family = FAMILY_ALIASES.get(name.lower())
    for profile in PROFILES:
        if profile.name == family:
            return profile
    raise UnknownEncoderError(name)
