"""
Encoder version probing.

Each family prints its version differently (aomenc in ``--help``, rav1e in
``--version``, SvtAv1EncApp on stderr when run without arguments). Probing is
best-effort: an encoder that cannot be run reports ``unknown`` and the
benchmark itself surfaces the failure later.
"""

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .profiles import EncoderProfile
from ..system.system_utils import run_command
from ....utils.logging import get_logger

logger = get_logger("version_probe")

UNKNOWN_VERSION = "unknown"

_RAV1E_OVERWRITE = re.compile(r"^\s*-y", re.MULTILINE)


@dataclass(frozen=True)
class EncoderInfo:
    """What probing learned about one encoder binary."""
    version: str = UNKNOWN_VERSION
    overwrite_supported: bool = False


def _probe_output(encoder: Union[str, Path], args, stream: str, timeout: int) -> Optional[str]:
    try:
        result = run_command([str(encoder), *args], timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warn(f"Cannot run {encoder} to probe it: {e}")
        return None
    return result.stderr if stream == "stderr" else result.stdout


def probe_version(encoder: Union[str, Path], profile: EncoderProfile, timeout: int = 10) -> str:
    """Return the version string reported by the encoder, or 'unknown'."""
    output = _probe_output(encoder, profile.version_args, profile.version_stream, timeout)
    version = profile.parse_version(output) if output is not None else None
    if version is None:
        logger.debug(f"No version found for {encoder} ({profile.name})")
        return UNKNOWN_VERSION
    return version


def supports_overwrite(encoder: Union[str, Path], timeout: int = 10) -> bool:
    """True when rav1e's help lists the -y (overwrite output) option."""
    output = _probe_output(encoder, ("--help",), "stdout", timeout)
    return bool(output and _RAV1E_OVERWRITE.search(output))


def probe_encoder(encoder: Union[str, Path], profile: EncoderProfile) -> EncoderInfo:
    """Probe version and optional capabilities for one encoder."""
    version = probe_version(encoder, profile)
    overwrite = supports_overwrite(encoder) if profile.name == "rav1e" else False
    logger.probe(f"{Path(encoder).name}: {profile.name} {version}"
                 + (" (supports -y)" if overwrite else ""))
    return EncoderInfo(version=version, overwrite_supported=overwrite)


def no_probe(encoder: Union[str, Path], profile: EncoderProfile) -> EncoderInfo:
    """Probe replacement used with --no-probe."""
    return EncoderInfo()
