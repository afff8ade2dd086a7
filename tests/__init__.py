"""
Test package for speed_levels.

External processes (hyperfine, encoder binaries) are always mocked; the tests
never need either installed.
"""
