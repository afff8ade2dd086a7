"""
Speed Levels - benchmark AV1 encoders across every speed preset with hyperfine.
"""

__version__ = "1.0.0"

# Import configuration utilities
from .config import get_config, load_env_file, default_tag

__all__ = [
    "get_config",
    "load_env_file",
    "default_tag",
]
