"""
System utilities for speed_levels.

This module provides system-level utilities including:
- Subprocess execution with logging and timeouts
- CPU topology and load monitoring
"""

import shlex
import subprocess
import threading
import time
from typing import Optional

import psutil

from ....utils.logging import get_logger, get_debug_mode

logger = get_logger("system_utils")


def run_logged(cmd: list[str], **popen_kwargs) -> subprocess.CompletedProcess:
    """Run command with logging"""
    logger.cmd(shlex.join(cmd))
    return subprocess.run(cmd, **popen_kwargs)


def run_command(cmd: list[str], timeout: int = 30, capture_output: bool = True,
                text: bool = True, check: bool = False) -> subprocess.CompletedProcess:
    """
    Standardized subprocess command runner with consistent error handling.

    Args:
        cmd: Command as list of strings
        timeout: Timeout in seconds (default: 30)
        capture_output: Whether to capture stdout/stderr (default: True)
        text: Whether to use text mode (default: True)
        check: Whether to raise exception on non-zero exit (default: False)

    Returns:
        CompletedProcess object
    """
    try:
        return run_logged(
            cmd,
            capture_output=capture_output,
            text=text,
            timeout=timeout,
            check=check
        )
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd[:3])}...")
        raise
    except subprocess.CalledProcessError as e:
        logger.debug(f"Command failed: {' '.join(cmd[:3])}... (exit code: {e.returncode})")
        raise


def terminate_process_tree(process: subprocess.Popen, timeout: float = 5.0):
    """Terminate a process and everything it spawned, killing stragglers."""
    try:
        children = psutil.Process(process.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    for child in children:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass
    if process.poll() is None:
        process.terminate()

    _, alive = psutil.wait_procs(children, timeout=timeout)
    for child in alive:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warn(f"Process {process.pid} ignored SIGTERM; killing it")
        process.kill()


def cpu_count() -> int:
    """Logical CPU count, never less than 1."""
    return psutil.cpu_count(logical=True) or 1


def check_oversubscription(workers: int, threads: int) -> bool:
    """Warn when concurrent encoders would request more threads than CPUs exist.

    Returns True when the configuration oversubscribes the machine.
    """
    available = cpu_count()
    requested = workers * threads
    if workers > 1 and requested > available:
        logger.warn(f"{workers} workers x {threads} encoder threads = {requested} threads "
                    f"on {available} logical CPUs; timings will be skewed by contention")
        return True
    return False


def start_cpu_monitor(interval: float = 5.0,
                      duration_seconds: int = 0) -> tuple[threading.Thread, threading.Event]:
    """Start CPU monitoring in background. Returns (thread, stop_event)

    Samples are only logged in debug mode.
    """
    stop_event = threading.Event()

    def monitor_cpu():
        logger.debug(f"Starting CPU monitoring (cores: {cpu_count()})")
        start_time = time.time()
        while not stop_event.is_set():
            cpu_percent = psutil.cpu_percent(interval=interval)
            if stop_event.is_set():
                break
            cpu_per_core = psutil.cpu_percent(percpu=True, interval=None)
            active_cores = sum(1 for c in cpu_per_core if c > 10)
            logger.debug(f"CPU: {cpu_percent:5.1f}% total, "
                         f"{active_cores}/{len(cpu_per_core)} cores active (>10%)")
            if duration_seconds > 0 and time.time() - start_time > duration_seconds:
                break

    thread = threading.Thread(target=monitor_cpu, daemon=True)
    thread.start()
    return thread, stop_event


def stop_cpu_monitor(monitor: Optional[tuple[threading.Thread, threading.Event]]):
    """Stop a monitor started by start_cpu_monitor."""
    if monitor is None:
        return
    thread, stop_event = monitor
    stop_event.set()
    thread.join(timeout=1)


def maybe_start_cpu_monitor() -> Optional[tuple[threading.Thread, threading.Event]]:
    """Start the CPU monitor only when debug output is enabled."""
    if get_debug_mode():
        return start_cpu_monitor()
    return None
