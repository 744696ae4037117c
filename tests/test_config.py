import json
import stat
from pathlib import Path

import pytest

from kyco_bridge.config.loader import camel_to_snake, convert_keys, get_config_path, load_config, save_config
from kyco_bridge.config.schema import BridgeRuntimeConfig, Config


def test_defaults_match_bridge_conventions() -> None:
    cfg = BridgeRuntimeConfig()
    assert cfg.url == "http://127.0.0.1:17432"
    assert cfg.host == "127.0.0.1"
    assert cfg.port == 17432
    assert cfg.startup_delay_ms == 1500
    assert cfg.health_attempts == 5
    assert cfg.health_interval_ms == 500
    assert cfg.claude_query_attempts == 3
    assert cfg.codex_query_attempts == 1
    assert cfg.path_override is None
    assert cfg.log_path is None


def test_load_camel_case_config(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "configVersion": 1,
                "bridge": {
                    "url": "http://localhost:9999",
                    "path": "~/src/kyco/bridge",
                    "healthAttempts": 7,
                    "claudeQueryAttempts": 2,
                    "logFile": "~/.kyco/logs/bridge.log",
                },
            }
        )
    )

    cfg = load_config(path).bridge
    assert cfg.port == 9999
    assert cfg.host == "localhost"
    assert cfg.health_attempts == 7
    assert cfg.claude_query_attempts == 2
    assert cfg.path_override == Path.home() / "src" / "kyco" / "bridge"
    assert cfg.log_path == Path.home() / ".kyco" / "logs" / "bridge.log"


def test_malformed_config_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{ not json")
    assert load_config(path).bridge == BridgeRuntimeConfig()

    path.write_text(json.dumps({"bridge": {"healthAttempts": 0}}))
    assert load_config(path).bridge.health_attempts == 5


def test_missing_config_uses_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.json").bridge.url == "http://127.0.0.1:17432"


def test_save_config_writes_camel_case_privately(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.json"
    config = Config(bridge=BridgeRuntimeConfig(health_attempts=9))

    save_config(config, path)

    data = json.loads(path.read_text())
    assert data["configVersion"] == 1
    assert data["bridge"]["healthAttempts"] == 9
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert load_config(path).bridge.health_attempts == 9


def test_key_conversion() -> None:
    assert camel_to_snake("readTimeoutS") == "read_timeout_s"
    assert convert_keys({"bridge": [{"healthIntervalMs": 1}]}) == {"bridge": [{"health_interval_ms": 1}]}


def test_config_path_lives_under_kyco_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    assert get_config_path() == tmp_path / ".kyco" / "config.json"
    assert not (tmp_path / ".kyco").exists()
