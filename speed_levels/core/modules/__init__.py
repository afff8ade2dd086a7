# Core modules for speed_levels
