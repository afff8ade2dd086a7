"""Result aggregation and report output."""

from .aggregator import AggregateRow, ResultAggregator
from .report_writer import REPORT_COLUMNS, write_report, read_report

__all__ = ["AggregateRow", "ResultAggregator", "REPORT_COLUMNS", "write_report", "read_report"]
