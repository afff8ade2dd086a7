"""Benchmark execution: hyperfine adapter and the session driver."""

from .hyperfine_runner import HyperfineRunner, TimingResult, BatchOutcome
from .benchmark_session import BenchmarkSession, SessionSummary, run_benchmark

__all__ = [
    "HyperfineRunner", "TimingResult", "BatchOutcome",
    "BenchmarkSession", "SessionSummary", "run_benchmark",
]
