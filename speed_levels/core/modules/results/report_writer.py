"""
Aggregate report output.

The report is a CSV file with one record per AggregateRow, in insertion order.
An existing report is never replaced unless overwriting was asked for.
"""

import math
from pathlib import Path
from typing import Any, List, Sequence

import pandas as pd

from .aggregator import AggregateRow
from ..errors import InvalidReportError, OutputExistsError
from ....utils.logging import get_logger

logger = get_logger("report_writer")

REPORT_COLUMNS = [
    "tag", "encoder", "version", "input", "speed",
    "mean", "stddev", "median", "min", "max", "user", "system",
    "runs", "command",
]


def rows_to_frame(rows: Sequence[AggregateRow]) -> pd.DataFrame:
    return pd.DataFrame([row.to_dict() for row in rows], columns=REPORT_COLUMNS)


def write_report(rows: Sequence[AggregateRow], path: Path, overwrite: bool = False) -> Path:
    """Write the aggregate table to ``path``.

    Raises:
        OutputExistsError: path exists and overwrite is False
    """
    path = Path(path)
    if path.exists() and not overwrite:
        raise OutputExistsError(path)

    path.parent.mkdir(parents=True, exist_ok=True)
    rows_to_frame(rows).to_csv(path, index=False)
    logger.report(f"Wrote {len(rows)} rows to {path}")
    return path


def _cell(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def read_report(path: Path) -> List[AggregateRow]:
    """Load rows back from a report written by write_report.

    Raises:
        InvalidReportError: the file is empty, not CSV, or lacks the report columns
    """
    try:
        frame = pd.read_csv(path, dtype={"tag": str, "encoder": str, "version": str,
                                         "input": str, "command": str})
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise InvalidReportError(path, str(e)) from e
    missing = [c for c in ("tag", "encoder", "input", "speed", "mean") if c not in frame.columns]
    if missing:
        raise InvalidReportError(path, f"missing {', '.join(missing)}")

    rows = []
    for line, record in enumerate(frame.to_dict(orient="records"), start=2):
        values = {column: _cell(record.get(column)) for column in REPORT_COLUMNS}
        try:
            rows.append(AggregateRow(
                tag=values["tag"],
                encoder=values["encoder"],
                version=values["version"] or "unknown",
                input=values["input"],
                speed=int(values["speed"]),
                mean=float(values["mean"]),
                stddev=values["stddev"],
                median=values["median"],
                min=values["min"],
                max=values["max"],
                user=values["user"],
                system=values["system"],
                runs=int(values["runs"]) if values["runs"] is not None else 1,
                command=values["command"] or "",
            ))
        except (TypeError, ValueError) as e:
            raise InvalidReportError(path, f"line {line}: {e}") from e
    return rows
