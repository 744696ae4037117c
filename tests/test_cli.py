import json
import sys

import httpx
import pytest
from loguru import logger
from typer.testing import CliRunner

from kyco_bridge import __version__
from kyco_bridge.bridge.client import BridgeClient, Endpoint
from kyco_bridge.bridge.process import BridgeProcessSupervisor
from kyco_bridge.cli.commands import app
from kyco_bridge.config.schema import BridgeRuntimeConfig

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logger():
    yield
    # The CLI callback re-routes loguru to the runner's captured stderr.
    logger.remove()
    logger.add(sys.stderr)


def _patch_client(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    def make_client() -> BridgeClient:
        return BridgeClient(Endpoint(base_url="http://bridge.test"), transport=httpx.MockTransport(handler))

    monkeypatch.setattr("kyco_bridge.cli.session_commands.make_client", make_client)
    monkeypatch.setattr("kyco_bridge.cli.bridge_commands.make_client", make_client)


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_query_streams_text(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        lines = [
            {"type": "text", "sessionId": "s1", "timestamp": 1, "content": "Hello there", "partial": False},
            {"type": "session.complete", "sessionId": "s1", "timestamp": 2, "success": True, "durationMs": 1500},
        ]
        return httpx.Response(200, content="".join(json.dumps(line) + "\n" for line in lines).encode())

    _patch_client(monkeypatch, handler)
    result = runner.invoke(app, ["query", "say hi", "--backend", "codex", "--cwd", str(tmp_path)])

    assert result.exit_code == 0, result.stdout
    assert "Hello there" in result.stdout
    assert "completed" in result.stdout
    assert bodies == [{"prompt": "say hi", "cwd": str(tmp_path.resolve())}]


def test_query_rejects_unknown_backend() -> None:
    result = runner.invoke(app, ["query", "hi", "--backend", "gemini"])
    assert result.exit_code == 2


def test_sessions_show_missing_exits_nonzero(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_client(monkeypatch, lambda request: httpx.Response(404, json={"error": "Session not found"}))
    result = runner.invoke(app, ["sessions", "show", "nope"])
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_health_unreachable_exits_with_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    _patch_client(monkeypatch, handler)
    result = runner.invoke(app, ["health"])
    assert result.exit_code == 1
    assert "health check" in result.stdout


def test_approve_sends_deny_decision(monkeypatch: pytest.MonkeyPatch) -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True})

    _patch_client(monkeypatch, handler)
    result = runner.invoke(app, ["approve", "req-1", "--deny", "--reason", "not here"])
    assert result.exit_code == 0
    assert bodies == [{"requestId": "req-1", "decision": "deny", "reason": "not here"}]


def test_approvals_lists_pending_requests(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"pending": [{"requestId": "req-7", "toolName": "Bash", "toolInput": {"command": "ls"}}]},
        )

    _patch_client(monkeypatch, handler)
    result = runner.invoke(app, ["approvals"])
    assert result.exit_code == 0, result.stdout
    assert "req-7" in result.stdout
    assert "Bash" in result.stdout


def test_start_attaches_to_running_bridge(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "ok", "version": "0.4.2", "timestamp": 1})

    def make_supervisor() -> BridgeProcessSupervisor:
        client = BridgeClient(Endpoint(base_url="http://bridge.test"), transport=httpx.MockTransport(handler))
        return BridgeProcessSupervisor(BridgeRuntimeConfig(), client=client)

    monkeypatch.setattr("kyco_bridge.cli.bridge_commands.make_supervisor", make_supervisor)
    result = runner.invoke(app, ["start"])
    assert result.exit_code == 0, result.stdout
    assert "attached" in result.stdout

    # A started bridge lives only as long as the command; there is no detached mode.
    assert runner.invoke(app, ["start", "--no-hold"]).exit_code == 2
