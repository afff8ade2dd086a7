"""Configuration management for speed-levels."""

import os
import platform
from pathlib import Path
from typing import Optional, Dict, Any


def load_env_file(env_path: Optional[Path] = None) -> Dict[str, str]:
    """Load environment variables from .env file."""
    if env_path is None:
        # Look for .env in current directory, then in package directory
        candidates = [
            Path.cwd() / ".env",
            Path(__file__).parent.parent / ".env",
        ]

        for candidate in candidates:
            if candidate.exists():
                env_path = candidate
                break

    env_vars = {}

    if env_path and env_path.exists():
        with open(env_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#'):
                    if '=' in line:
                        key, value = line.split('=', 1)
                        env_vars[key.strip()] = value.strip().strip('"').strip("'")

    return env_vars


def _lookup(env_vars: Dict[str, str], key: str, default: str = "") -> str:
    # The process environment wins over .env, like a shell export would
    return os.getenv(key, env_vars.get(key, default))


def get_config(env_path: Optional[Path] = None) -> Dict[str, Any]:
    """Get configuration from environment variables and .env file."""
    env_vars = load_env_file(env_path)

    config = {
        'extra_aom': _lookup(env_vars, 'EXTRA_AOM'),
        'extra_rav1e': _lookup(env_vars, 'EXTRA_RAV1E'),
        'extra_svt': _lookup(env_vars, 'EXTRA_SVT'),
        'runner': _lookup(env_vars, 'RUNNER_COMMAND'),
        'hyperfine': _lookup(env_vars, 'HYPERFINE', 'hyperfine') or 'hyperfine',
        'debug': _lookup(env_vars, 'DEBUG', 'false').lower() in ('true', '1', 'yes'),
    }

    return config


def default_tag() -> str:
    """Descriptive tag for this machine: <hostname>-<architecture>."""
    uname = platform.uname()
    node = uname.node or "localhost"
    machine = uname.machine or "unknown"
    return f"{node}-{machine}"
