"""Utility helpers for kyco-bridge."""
