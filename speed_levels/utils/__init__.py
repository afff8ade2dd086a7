"""Shared utilities for speed_levels."""
