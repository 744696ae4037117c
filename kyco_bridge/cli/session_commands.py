"""Session, query and control commands."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import typer
from rich.table import Table

from kyco_bridge import __logo__
from kyco_bridge.bridge.types import (
    ClaudeQueryRequest,
    CodexQueryRequest,
    ErrorEvent,
    SessionCompleteEvent,
    SessionStartEvent,
    TextEvent,
    ToolApprovalNeededEvent,
    ToolApprovalResponse,
    ToolResultEvent,
    ToolUseEvent,
)
from kyco_bridge.errors import BridgeError

from .core import app, console, fail, make_client

sessions_app = typer.Typer(help="Inspect sessions stored by the bridge")
app.add_typer(sessions_app, name="sessions")

_BACKENDS = ("claude", "codex")
_PERMISSION_MODES = ("default", "acceptEdits", "bypassPermissions", "plan", "delegate", "dontAsk")


def _format_ms(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M")


def _summarize(value: object, limit: int = 60) -> str:
    if value is None:
        return ""
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _check_choice(value: str, choices: tuple[str, ...], name: str) -> str:
    if value not in choices:
        console.print(f"[red]Unknown {name} {value!r}; expected one of: {', '.join(choices)}[/red]")
        raise typer.Exit(2)
    return value


@sessions_app.command("list")
def sessions_list(
    session_type: str = typer.Option(None, "--type", "-t", help="Filter by backend (claude/codex)"),
) -> None:
    """List stored sessions."""
    with make_client() as client:
        try:
            sessions = client.list_sessions(session_type)
        except BridgeError as e:
            fail(e)

    if not sessions:
        console.print("No sessions.")
        return

    table = Table(title=f"{__logo__} Sessions")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Last active")
    table.add_column("Turns", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("CWD", style="dim")
    for s in sessions:
        table.add_row(
            s.id,
            s.session_type,
            _format_ms(s.last_active_at),
            str(s.turn_count),
            str(s.total_tokens),
            f"${s.total_cost_usd:.4f}",
            s.cwd,
        )
    console.print(table)


@sessions_app.command("show")
def sessions_show(session_id: str = typer.Argument(..., help="Session ID")) -> None:
    """Show one stored session."""
    with make_client() as client:
        try:
            session = client.get_session(session_id)
        except BridgeError as e:
            fail(e)

    if session is None:
        console.print(f"[yellow]Session {session_id} not found[/yellow]")
        raise typer.Exit(1)

    console.print(f"[bold]{session.id}[/bold] ({session.session_type})")
    console.print(f"  cwd:         {session.cwd}")
    console.print(f"  created:     {_format_ms(session.created_at)}")
    console.print(f"  last active: {_format_ms(session.last_active_at)}")
    console.print(f"  turns:       {session.turn_count}")
    console.print(f"  tokens:      {session.total_tokens}")
    console.print(f"  cost:        ${session.total_cost_usd:.4f}")


@app.command()
def query(
    prompt: str = typer.Argument(..., help="Prompt to send"),
    backend: str = typer.Option("claude", "--backend", "-b", help="claude or codex"),
    cwd: Path = typer.Option(None, "--cwd", help="Working directory for the agent (default: current)"),
    session_id: str = typer.Option(None, "--session-id", "-s", help="Session/thread to resume"),
    permission_mode: str = typer.Option(None, "--permission-mode", help="Claude permission mode"),
    model: str = typer.Option(None, "--model", "-m", help="Model override"),
) -> None:
    """Run a query and stream its events."""
    _check_choice(backend, _BACKENDS, "backend")
    if permission_mode is not None:
        _check_choice(permission_mode, _PERMISSION_MODES, "permission mode")
    work_dir = str((cwd or Path.cwd()).resolve())

    with make_client() as client:
        try:
            if backend == "claude":
                stream = client.claude_query(
                    ClaudeQueryRequest(
                        prompt=prompt,
                        cwd=work_dir,
                        session_id=session_id,
                        permission_mode=permission_mode,
                        model=model,
                    )
                )
            else:
                stream = client.codex_query(
                    CodexQueryRequest(prompt=prompt, cwd=work_dir, thread_id=session_id, model=model)
                )
            with stream:
                for event in stream:
                    _print_event(event)
        except BridgeError as e:
            fail(e)
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopped reading; the session may still be running.[/yellow]")
            raise typer.Exit(130)


def _print_event(event: object) -> None:
    if isinstance(event, TextEvent):
        console.print(event.content, end="" if event.partial else "\n", markup=False, highlight=False)
    elif isinstance(event, SessionStartEvent):
        console.print(f"[dim]session {event.session_id} started ({event.model})[/dim]")
    elif isinstance(event, ToolUseEvent):
        console.print(f"[cyan]→ {event.tool_name}[/cyan]")
    elif isinstance(event, ToolResultEvent):
        mark = "[green]✓[/green]" if event.success else "[red]✗[/red]"
        console.print(f"{mark} [dim]{event.tool_use_id}[/dim]")
    elif isinstance(event, ToolApprovalNeededEvent):
        console.print(
            f"[yellow]approval needed for {event.tool_name} (request {event.request_id})[/yellow]"
        )
    elif isinstance(event, ErrorEvent):
        console.print(f"[red]error: {event.message}[/red]")
    elif isinstance(event, SessionCompleteEvent):
        outcome = "[green]completed[/green]" if event.success else "[red]failed[/red]"
        cost = f", ${event.cost_usd:.4f}" if event.cost_usd is not None else ""
        console.print(f"\n{outcome} in {event.duration_ms / 1000:.1f}s{cost}")


@app.command()
def interrupt(
    session_id: str = typer.Argument(..., help="Claude session ID or Codex thread ID"),
    backend: str = typer.Option("claude", "--backend", "-b", help="claude or codex"),
) -> None:
    """Interrupt a running session."""
    _check_choice(backend, _BACKENDS, "backend")
    with make_client() as client:
        try:
            if backend == "claude":
                ok = client.interrupt_claude(session_id)
            else:
                ok = client.interrupt_codex(session_id)
        except BridgeError as e:
            fail(e)
    if ok:
        console.print(f"[green]✓[/green] Interrupted {session_id}")
    else:
        console.print(f"[yellow]Nothing to interrupt for {session_id}[/yellow]")


@app.command("permission-mode")
def permission_mode(
    session_id: str = typer.Argument(..., help="Claude session ID"),
    mode: str = typer.Argument(..., help="default, acceptEdits, bypassPermissions, plan, delegate, dontAsk"),
) -> None:
    """Change the permission mode of a running Claude session."""
    _check_choice(mode, _PERMISSION_MODES, "permission mode")
    with make_client() as client:
        try:
            ok = client.set_claude_permission_mode(session_id, mode)
        except BridgeError as e:
            fail(e)
    if ok:
        console.print(f"[green]✓[/green] {session_id} now in {mode} mode")
    else:
        console.print(f"[yellow]Bridge did not change the mode of {session_id}[/yellow]")


@app.command()
def approvals() -> None:
    """List tool uses waiting for approval."""
    with make_client() as client:
        try:
            pending = client.list_pending_approvals()
        except BridgeError as e:
            fail(e)

    if not pending:
        console.print("No pending approvals.")
        return
    table = Table(title=f"{__logo__} Pending approvals")
    table.add_column("Request", style="cyan")
    table.add_column("Tool")
    table.add_column("Input", style="dim")
    for item in pending:
        table.add_row(item.request_id, item.tool_name, _summarize(item.tool_input))
    console.print(table)


@app.command()
def approve(
    request_id: str = typer.Argument(..., help="Approval request ID"),
    deny: bool = typer.Option(False, "--deny", help="Deny instead of allow"),
    reason: str = typer.Option(None, "--reason", "-r", help="Reason passed back to the agent"),
) -> None:
    """Answer a pending tool approval."""
    decision = "deny" if deny else "allow"
    with make_client() as client:
        try:
            ok = client.send_tool_approval(
                ToolApprovalResponse(request_id=request_id, decision=decision, reason=reason)
            )
        except BridgeError as e:
            fail(e)
    if ok:
        console.print(f"[green]✓[/green] {decision} sent for {request_id}")
    else:
        console.print(f"[yellow]No pending request {request_id}[/yellow]")
