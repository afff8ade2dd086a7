"""
Result aggregation.

Collects TimingResults into one append-only table keyed by
(tag, encoder family, input, speed preset). The first row for a key wins;
a second insertion raises DuplicateKeyError and leaves the table untouched.
"""

import threading
from dataclasses import dataclass, asdict
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from ..errors import DuplicateKeyError

if TYPE_CHECKING:
    from ..planning.job_matrix import BenchmarkJob
    from ..processing.hyperfine_runner import TimingResult

RowKey = Tuple[str, str, str, int]


@dataclass(frozen=True)
class AggregateRow:
    """One line of the final report; times in seconds."""
    tag: str
    encoder: str
    version: str
    input: str
    speed: int
    mean: float
    stddev: Optional[float]
    median: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    user: Optional[float] = None
    system: Optional[float] = None
    runs: int = 1
    command: str = ""

    @property
    def key(self) -> RowKey:
        return (self.tag, self.encoder, self.input, self.speed)

    def to_dict(self) -> Dict:
        return asdict(self)


class ResultAggregator:
    """Single table of rows for one benchmarking run."""

    def __init__(self, tag: str):
        self.tag = tag
        self._rows: Dict[RowKey, AggregateRow] = {}
        self._lock = threading.Lock()

    def key_for(self, job: "BenchmarkJob") -> RowKey:
        return (self.tag, job.family, job.input_identity, job.speed)

    def row_for(self, result: "TimingResult") -> AggregateRow:
        job = result.job
        return AggregateRow(
            tag=self.tag,
            encoder=job.family,
            version=job.version,
            input=job.input_identity,
            speed=job.speed,
            mean=result.mean,
            stddev=result.stddev,
            median=result.median,
            min=result.min,
            max=result.max,
            user=result.user,
            system=result.system,
            runs=result.runs,
            command=result.command,
        )

    def insert(self, row: AggregateRow) -> AggregateRow:
        """Append a row, rejecting a key that is already present."""
        with self._lock:
            if row.key in self._rows:
                raise DuplicateKeyError(row.key)
            self._rows[row.key] = row
        return row

    def add(self, result: "TimingResult") -> AggregateRow:
        """Convert a timing result into a row and append it.

        Raises:
            DuplicateKeyError: a row with the same key already exists
        """
        return self.insert(self.row_for(result))

    def seed(self, rows: Iterable[AggregateRow]) -> int:
        """Preload rows from an earlier report; returns how many were taken.

        Rows from another tag or duplicated keys are skipped.
        """
        taken = 0
        for row in rows:
            if row.tag != self.tag:
                continue
            try:
                self.insert(row)
            except DuplicateKeyError:
                continue
            taken += 1
        return taken

    def rows(self) -> List[AggregateRow]:
        """Rows in insertion order."""
        with self._lock:
            return list(self._rows.values())

    def __contains__(self, key: RowKey) -> bool:
        with self._lock:
            return key in self._rows

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
