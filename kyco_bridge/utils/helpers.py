"""Filesystem helpers."""

from pathlib import Path


def get_data_path() -> Path:
    """Get the kyco data directory (~/.kyco). Not created here."""
    return Path.home() / ".kyco"
