"""Bridge lifecycle commands: start, health, status, locate, install."""

from __future__ import annotations

import time
from pathlib import Path

import typer
from rich.table import Table

from kyco_bridge import __logo__
from kyco_bridge.errors import BridgeError

from .core import app, console, fail, make_client, make_supervisor


@app.command()
def start() -> None:
    """Start the SDK bridge (or attach to a running one) and keep it up until Ctrl-C.

    A bridge started here is owned by this command and stops when it exits.
    """
    supervisor = make_supervisor()
    try:
        handle = supervisor.start()
    except BridgeError as e:
        fail(e)

    base_url = supervisor.client().endpoint.base_url
    if not handle.owned:
        console.print(f"[yellow]Bridge already running at {base_url}; attached[/yellow]")
        supervisor.stop()
        return

    console.print(f"[green]✓[/green] Bridge started at {base_url} (pid {handle.pid})")

    console.print("[dim]Press Ctrl-C to stop.[/dim]")
    try:
        while handle.is_running() and supervisor.client().is_healthy():
            time.sleep(2.0)
        console.print("[red]Bridge stopped responding[/red]")
    except KeyboardInterrupt:
        pass
    finally:
        supervisor.stop()
        console.print(f"{__logo__} Bridge stopped")


@app.command()
def health() -> None:
    """Check whether the bridge answers its health endpoint."""
    with make_client() as client:
        try:
            result = client.health()
        except BridgeError as e:
            fail(e)
    console.print(
        f"[green]✓[/green] {client.endpoint.base_url}: {result.status} (bridge v{result.version})"
    )


@app.command()
def status() -> None:
    """Show active session counts on the bridge."""
    with make_client() as client:
        try:
            result = client.status()
        except BridgeError as e:
            fail(e)

    table = Table(title=f"{__logo__} Bridge status")
    table.add_column("Backend", style="cyan")
    table.add_column("Active sessions", justify="right")
    table.add_row("claude", str(result.active_sessions.claude))
    table.add_row("codex", str(result.active_sessions.codex))
    console.print(table)


@app.command()
def locate() -> None:
    """Show where the bridge is looked for, without installing it."""
    locator = make_supervisor().locator
    found = locator.find()
    for candidate in locator.candidates():
        mark = "[green]✓[/green]" if candidate.exists() else "[dim]✗[/dim]"
        console.print(f"{mark} {candidate}")
    if found is None:
        console.print(f"\n[yellow]Not found; `start` would install into {locator.home_bridge_dir}[/yellow]")
    else:
        console.print(f"\nUsing: [cyan]{found}[/cyan]")


@app.command()
def install(
    target: Path = typer.Option(None, "--dir", "-d", help="Install directory (default: ~/.kyco)"),
) -> None:
    """Download and unpack the bridge release."""
    locator = make_supervisor().locator
    try:
        bridge_dir = locator.install(target or locator.home)
    except BridgeError as e:
        fail(e)
    console.print(f"[green]✓[/green] Bridge installed to {bridge_dir}")
