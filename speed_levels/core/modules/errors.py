"""
Error taxonomy for speed_levels.

Fatal conditions (unknown encoder, missing or failing hyperfine, report collision)
end the run. Per-job conditions (unparseable result, duplicate key) are logged by
the session and the run continues.
"""

from pathlib import Path
from typing import Optional, Tuple


class SpeedLevelsError(Exception):
    """Base class for all speed_levels errors."""


class UnknownEncoderError(SpeedLevelsError):
    """Encoder path does not match any supported encoder family."""

    def __init__(self, encoder: "str | Path"):
        self.encoder = str(encoder)
        super().__init__(f"Unrecognized encoder: {self.encoder} (expected aomenc, rav1e or SvtAv1EncApp)")


class RunnerUnavailableError(SpeedLevelsError):
    """The timing tool could not be located or launched."""

    def __init__(self, runner: str, reason: str = "not found in PATH"):
        self.runner = runner
        super().__init__(f"Timing tool '{runner}' unavailable: {reason}")


class RunnerFailedError(SpeedLevelsError):
    """The timing tool exited with a failure status."""

    def __init__(self, runner: str, returncode: int, stderr: Optional[str] = None):
        self.runner = runner
        self.returncode = returncode
        self.stderr = stderr
        message = f"Timing tool '{runner}' failed with exit code {returncode}"
        if stderr:
            message += f": {stderr.strip()[:200]}"
        super().__init__(message)


class JobResultUnparseable(SpeedLevelsError):
    """One job's timing output could not be parsed."""

    def __init__(self, label: str, reason: str):
        self.label = label
        self.reason = reason
        super().__init__(f"Unparseable result for {label}: {reason}")


class DuplicateKeyError(SpeedLevelsError):
    """An aggregate row with the same key already exists."""

    def __init__(self, key: Tuple):
        self.key = key
        super().__init__(f"Duplicate result key {key}; keeping the first result")


class OutputExistsError(SpeedLevelsError):
    """The report path already exists and overwriting was not requested."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(f"Report already exists: {self.path} (use --overwrite or --resume)")


class InvalidReportError(SpeedLevelsError):
    """An existing report cannot be read back as a speed-levels report."""

    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path} is not a speed-levels report: {reason}")
