"""CLI module for kyco-bridge."""
