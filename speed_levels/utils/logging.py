"""
Centralized logging utilities for speed_levels

Provides consistent logging patterns with configurable debug levels:
- [INFO] for general information
- [WARN] for warnings
- [ERROR] for errors
- [RESULT] for final results
- [DEBUG] for debug information
- [BENCH] for benchmark dispatch messages
- [PROBE] for encoder version probing
- [CMD] for rendered command lines (debug only)
- [REPORT] for report output

Usage:
    from speed_levels.utils.logging import get_logger, set_debug_mode

    set_debug_mode(True)  # Enable debug messages

    logger = get_logger("hyperfine_runner")
    logger.info("This is an info message")
    logger.debug("This is a debug message")  # Only shows if debug enabled
    logger.bench("Timing aomenc on clip.y4m")
"""

import os
from enum import Enum
from typing import Optional, Sequence

from tqdm import tqdm

# Global logging configuration
_DEBUG_ENABLED = False
_QUIET_MODE = False


class LogLevel(Enum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


def _init_debug_mode():
    global _DEBUG_ENABLED
    if os.getenv('DEBUG', '').lower() in ('1', 'true', 'yes'):
        _DEBUG_ENABLED = True

_init_debug_mode()


def set_debug_mode(enabled: bool):
    """Enable or disable debug mode globally"""
    global _DEBUG_ENABLED
    _DEBUG_ENABLED = enabled


def set_quiet_mode(enabled: bool):
    """Enable or disable quiet mode (suppress INFO and DEBUG messages)"""
    global _QUIET_MODE
    _QUIET_MODE = enabled


def get_debug_mode() -> bool:
    """Get current debug mode setting"""
    return _DEBUG_ENABLED


class Logger:
    """Centralized logger with consistent formatting and configurable output"""

    def __init__(self, module_name: str = ""):
        self.module_name = module_name
        self.prefix = f"[{module_name}] " if module_name else ""

    def _should_log(self, level: LogLevel) -> bool:
        if _QUIET_MODE and level in (LogLevel.DEBUG, LogLevel.INFO):
            return False
        if level is LogLevel.DEBUG:
            return _DEBUG_ENABLED
        return True

    def _log(self, level: LogLevel, message: str):
        if not self._should_log(level):
            return
        # tqdm.write keeps active progress bars intact
        tqdm.write(f"[{level.name}] {self.prefix}{message}")

    def _tagged(self, tag: str, message: str, level: LogLevel = LogLevel.INFO,
                debug_only: bool = False):
        if debug_only and not _DEBUG_ENABLED:
            return
        if self._should_log(level):
            tqdm.write(f"[{tag}] {message}")

    def debug(self, message: str):
        """Log debug message (only if debug mode enabled)"""
        if _DEBUG_ENABLED:
            self._log(LogLevel.DEBUG, message)

    def info(self, message: str):
        self._log(LogLevel.INFO, message)

    def warn(self, message: str):
        self._log(LogLevel.WARN, message)

    def error(self, message: str):
        self._log(LogLevel.ERROR, message)

    def result(self, message: str):
        """Log result message"""
        self._tagged("RESULT", f"{self.prefix}{message}")

    # Domain-specific logging methods
    def bench(self, message: str):
        """Log benchmark dispatch message"""
        self._tagged("BENCH", message)

    def probe(self, message: str):
        """Log encoder probing message"""
        self._tagged("PROBE", message)

    def cmd(self, message: str):
        """Log command execution message"""
        self._tagged("CMD", message, LogLevel.DEBUG, debug_only=True)

    def report(self, message: str):
        """Log report output message"""
        self._tagged("REPORT", message)


def get_logger(module_name: str = "") -> Logger:
    """Get a logger instance for a module"""
    return Logger(module_name)


def create_progress_bar(total: Optional[int] = None, desc: str = "", unit: str = "it",
                        position: Optional[int] = None, leave: bool = True) -> tqdm:
    """Create a progress bar with consistent styling"""
    return tqdm(total=total, desc=desc, unit=unit, position=position, leave=leave,
                disable=_QUIET_MODE)


def print_section_header(title: str, width: int = 90):
    """Print a section header with consistent formatting"""
    if _QUIET_MODE:
        return
    print("=" * width)
    print(title)
    print("=" * width)


def print_separator(width: int = 90):
    """Print a separator line"""
    print("-" * width)


def format_duration(seconds: float) -> str:
    """Format duration in seconds to a human-readable string"""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds/60:.1f}m"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"


def print_results_table(rows: Sequence):
    """Print aggregate rows as a fixed-width table"""
    if _QUIET_MODE or not rows:
        return
    print()
    print(f"{'Encoder':<10} | {'Version':<14} | {'Input':<24} | {'Speed':>5} | "
          f"{'Mean':>9} | {'Stddev':>9}")
    print_separator(86)
    for row in rows:
        stddev = format_duration(row.stddev) if row.stddev is not None else "-"
        print(f"{row.encoder:<10} | {str(row.version)[:14]:<14} | {str(row.input)[-24:]:<24} | "
              f"{row.speed:>5} | {format_duration(row.mean):>9} | {stddev:>9}")
