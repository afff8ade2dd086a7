"""Benchmark planning: job matrix expansion and command rendering."""

from .job_matrix import BenchmarkJob, JobBatch, generate_jobs, group_jobs
from .command_builder import RenderedCommand, build_command

__all__ = [
    "BenchmarkJob", "JobBatch", "generate_jobs", "group_jobs",
    "RenderedCommand", "build_command",
]
