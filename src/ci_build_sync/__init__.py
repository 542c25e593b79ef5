"""CI Build Sync - incremental CI build history with commit attribution."""

__version__ = "0.1.0"
