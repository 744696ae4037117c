"""Shared subprocess helpers for bridge install, build and teardown."""

from __future__ import annotations

import subprocess
from pathlib import Path

from kyco_bridge.errors import BridgeInstallError

OUTPUT_LIMIT = 800


def run_command(cmd: list[str], *, step: str, cwd: Path | None = None) -> str:
    """Run ``cmd`` to completion, returning stdout.

    Any failure (missing executable, non-zero exit) raises ``BridgeInstallError``
    carrying the captured diagnostic output.
    """
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise BridgeInstallError(step, f"could not run {cmd[0]!r} (is it installed?): {e}") from e
    if result.returncode != 0:
        output = ((result.stderr or "").strip() or (result.stdout or "").strip())[:OUTPUT_LIMIT]
        raise BridgeInstallError(
            step,
            f"{' '.join(cmd)} exited with status {result.returncode}: {output}",
            output=output,
        )
    return result.stdout or ""


def terminate_process(proc: subprocess.Popen, timeout_s: float = 10.0) -> int | None:
    """Kill ``proc`` and reap it. Safe on a process that already exited."""
    if proc.poll() is None:
        try:
            proc.kill()
        except OSError:
            pass
    try:
        return proc.wait(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        return None
