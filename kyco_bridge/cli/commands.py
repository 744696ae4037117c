"""CLI commands for kyco-bridge."""

from kyco_bridge.cli import bridge_commands, session_commands  # noqa: F401  (registers commands)
from kyco_bridge.cli.core import app

__all__ = ["app"]
