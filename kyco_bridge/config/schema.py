"""Configuration schema using Pydantic."""

from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RELEASE_URL = "https://github.com/MAF2414/kyco/releases/latest/download/kyco-bridge.tar.gz"


class BridgeRuntimeConfig(BaseModel):
    """Supervision and protocol settings for the local SDK bridge."""

    model_config = ConfigDict(extra="ignore")

    url: str = "http://127.0.0.1:17432"
    path: str | None = None  # Explicit install dir; KYCO_BRIDGE_PATH wins over this
    connect_timeout_s: float = Field(default=5.0, gt=0)
    read_timeout_s: float = Field(default=300.0, gt=0)
    startup_delay_ms: int = Field(default=1500, ge=0)
    health_attempts: int = Field(default=5, ge=1)
    health_interval_ms: int = Field(default=500, ge=0)
    claude_query_attempts: int = Field(default=3, ge=1)
    codex_query_attempts: int = Field(default=1, ge=1)
    retry_initial_delay_ms: int = Field(default=500, ge=0)
    retry_factor: float = Field(default=2.0, ge=1.0)
    release_url: str = DEFAULT_RELEASE_URL
    log_file: str | None = None  # None discards bridge stdout/stderr
    node_command: str = "node"
    npm_command: str = "npm"
    entry_script: str = "dist/server.js"

    @property
    def host(self) -> str:
        return urlparse(self.url).hostname or "127.0.0.1"

    @property
    def port(self) -> int:
        parsed = urlparse(self.url)
        if parsed.port is not None:
            return parsed.port
        return 443 if parsed.scheme == "https" else 80

    @property
    def path_override(self) -> Path | None:
        return Path(self.path).expanduser() if self.path else None

    @property
    def log_path(self) -> Path | None:
        return Path(self.log_file).expanduser() if self.log_file else None


class Config(BaseSettings):
    """Root configuration for kyco-bridge."""

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_prefix="KYCO_",
        env_nested_delimiter="__",
    )

    config_version: int = 1
    bridge: BridgeRuntimeConfig = Field(default_factory=BridgeRuntimeConfig)
