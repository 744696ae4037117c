"""Shared CLI application context and setup helpers."""

from __future__ import annotations

import sys
from typing import NoReturn

import typer
from loguru import logger
from rich.console import Console

from kyco_bridge import __logo__, __version__
from kyco_bridge.bridge.client import BridgeClient
from kyco_bridge.bridge.process import BridgeProcessSupervisor
from kyco_bridge.config.schema import BridgeRuntimeConfig
from kyco_bridge.errors import BridgeError

app = typer.Typer(
    name="kyco-bridge",
    help=f"{__logo__} kyco-bridge - supervise and talk to the KYCO SDK bridge",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} kyco-bridge v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logs on stderr"),
) -> None:
    """kyco-bridge - supervise and talk to the KYCO SDK bridge."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def runtime_config() -> BridgeRuntimeConfig:
    from kyco_bridge.config.loader import load_config

    return load_config().bridge


def make_supervisor() -> BridgeProcessSupervisor:
    return BridgeProcessSupervisor(runtime_config())


def make_client() -> BridgeClient:
    return make_supervisor().client()


def fail(error: BridgeError) -> NoReturn:
    console.print(f"[red]{error}[/red]")
    raise typer.Exit(1)
