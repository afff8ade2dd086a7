"""CLI entry point for the speed-levels package."""

import sys


def main_speed_levels():
    """Entry point for the speed-levels command."""
    from speed_levels.core.main import main
    sys.exit(main())


if __name__ == "__main__":
    main_speed_levels()
