"""Benchmark orchestration core: the command line driver and its modules."""
