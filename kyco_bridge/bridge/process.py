"""Bridge process lifecycle: attach to a running bridge or spawn and verify one."""

from __future__ import annotations

import atexit
import os
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias
from pathlib import Path

from loguru import logger

from kyco_bridge.bridge.client import BridgeClient, Endpoint
from kyco_bridge.bridge.locator import BridgeLocator
from kyco_bridge.bridge.retry import RetryPolicy
from kyco_bridge.config.schema import BridgeRuntimeConfig
from kyco_bridge.errors import BridgeError, BridgeInstallError, BridgeProcessError
from kyco_bridge.utils.process import run_command, terminate_process


class SupervisorState(Enum):
    IDLE = "idle"
    PROBING = "probing"
    ATTACHED = "attached"
    PREPARING = "preparing"
    BUILDING = "building"
    SPAWNING = "spawning"
    POLLING = "polling"
    HEALTHY = "healthy"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class Attached:
    """A bridge that was already running. Not ours to kill."""

    base_url: str


@dataclass(frozen=True, slots=True)
class Owned:
    """A bridge child process spawned, and to be reaped, by this supervisor."""

    process: subprocess.Popen
    bridge_dir: Path

    @property
    def pid(self) -> int:
        return self.process.pid


Ownership: TypeAlias = Attached | Owned


class ProcessHandle:
    """Result of a successful ``start()``.

    ``is_running()`` may be read from any thread. ``stop()`` is idempotent and
    only ever kills an ``Owned`` child; an ``Attached`` bridge is left alone.
    """

    def __init__(self, ownership: Ownership) -> None:
        self._ownership: Ownership | None = ownership
        self._alive = threading.Event()
        self._alive.set()
        self._teardown = threading.Lock()
        if isinstance(ownership, Owned):
            atexit.register(self.stop)

    @property
    def ownership(self) -> Ownership | None:
        return self._ownership

    @property
    def owned(self) -> bool:
        return isinstance(self._ownership, Owned)

    @property
    def pid(self) -> int | None:
        ownership = self._ownership
        return ownership.pid if isinstance(ownership, Owned) else None

    def is_running(self) -> bool:
        return self._alive.is_set()

    def stop(self) -> None:
        with self._teardown:
            ownership, self._ownership = self._ownership, None
            self._alive.clear()
            if isinstance(ownership, Owned):
                atexit.unregister(self.stop)
                logger.info("Stopping SDK bridge (pid {})", ownership.pid)
                terminate_process(ownership.process)

    def __repr__(self) -> str:
        kind = type(self._ownership).__name__ if self._ownership else "Released"
        return f"ProcessHandle({kind}, pid={self.pid}, running={self.is_running()})"


class BridgeProcessSupervisor:
    """Produces one verified-healthy bridge and owns its teardown.

    Example:
        with BridgeProcessSupervisor() as supervisor:
            handle = supervisor.start()
            events = supervisor.client().claude_query(request)
    """

    def __init__(
        self,
        config: BridgeRuntimeConfig | None = None,
        *,
        client: BridgeClient | None = None,
        locator: BridgeLocator | None = None,
    ) -> None:
        self.config = config or BridgeRuntimeConfig()
        self._client = client
        self._owns_client = client is None
        self._locator = locator
        self._handle: ProcessHandle | None = None
        self._state = SupervisorState.IDLE

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def handle(self) -> ProcessHandle | None:
        return self._handle

    @property
    def locator(self) -> BridgeLocator:
        if self._locator is None:
            self._locator = BridgeLocator(
                override=self.config.path_override,
                release_url=self.config.release_url,
            )
        return self._locator

    def client(self) -> BridgeClient:
        if self._client is None:
            cfg = self.config
            self._client = BridgeClient(
                Endpoint(
                    base_url=cfg.url,
                    connect_timeout_s=cfg.connect_timeout_s,
                    read_timeout_s=cfg.read_timeout_s,
                ),
                claude_retry=_retry_policy(cfg.claude_query_attempts, cfg),
                codex_retry=_retry_policy(cfg.codex_query_attempts, cfg),
            )
        return self._client

    def _transition(self, state: SupervisorState) -> None:
        logger.debug("bridge supervisor: {} -> {}", self._state.value, state.value)
        self._state = state

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def start(self) -> ProcessHandle:
        if self._handle is not None and self._handle.is_running():
            return self._handle

        self._transition(SupervisorState.PROBING)
        client = self.client()
        if client.is_healthy():
            logger.info("SDK bridge already running at {}", client.endpoint.base_url)
            self._transition(SupervisorState.ATTACHED)
            self._handle = ProcessHandle(Attached(client.endpoint.base_url))
            return self._handle

        try:
            bridge_dir = self._prepare()
            process = self._spawn(bridge_dir)
        except BridgeError:
            self._transition(SupervisorState.FAILED)
            raise

        try:
            self._wait_until_healthy(client)
        except BaseException:
            # Reap on every failure path, including KeyboardInterrupt.
            terminate_process(process)
            self._transition(SupervisorState.FAILED)
            raise

        logger.info("SDK bridge server started (pid {})", process.pid)
        self._transition(SupervisorState.HEALTHY)
        self._handle = ProcessHandle(Owned(process, bridge_dir))
        return self._handle

    def _prepare(self) -> Path:
        self._transition(SupervisorState.PREPARING)
        bridge_dir = self.locator.resolve()
        npm = self.config.npm_command

        if not (bridge_dir / "node_modules").exists():
            if not shutil.which(npm):
                raise BridgeInstallError("install bridge dependencies", f"{npm} not found on PATH")
            # Lockfile means a deterministic install.
            if (bridge_dir / "package-lock.json").exists():
                logger.info("Installing bridge dependencies ({} ci)...", npm)
                run_command([npm, "ci"], step="install bridge dependencies", cwd=bridge_dir)
            else:
                logger.info("Installing bridge dependencies ({} install)...", npm)
                run_command([npm, "install"], step="install bridge dependencies", cwd=bridge_dir)

        if not (bridge_dir / "dist").exists():
            self._transition(SupervisorState.BUILDING)
            if not shutil.which(npm):
                raise BridgeInstallError("build bridge", f"{npm} not found on PATH")
            logger.info("Building bridge...")
            run_command([npm, "run", "build"], step="build bridge", cwd=bridge_dir)

        return bridge_dir

    def _spawn(self, bridge_dir: Path) -> subprocess.Popen:
        self._transition(SupervisorState.SPAWNING)
        cfg = self.config
        if not shutil.which(cfg.node_command):
            raise BridgeProcessError("spawn bridge", f"{cfg.node_command} not found. Install Node.js >= 20.")

        env = dict(os.environ)
        env["KYCO_BRIDGE_HOST"] = cfg.host
        env["KYCO_BRIDGE_PORT"] = str(cfg.port)

        log_path = cfg.log_path
        logger.info("Starting SDK bridge server from {}", bridge_dir)
        try:
            if log_path is None:
                # Never PIPE: an unread pipe fills up and blocks the bridge.
                return subprocess.Popen(
                    [cfg.node_command, cfg.entry_script],
                    cwd=bridge_dir,
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, "a") as log_file:
                return subprocess.Popen(
                    [cfg.node_command, cfg.entry_script],
                    cwd=bridge_dir,
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                )
        except OSError as e:
            raise BridgeProcessError("spawn bridge", f"failed to spawn bridge process: {e}") from e

    def _wait_until_healthy(self, client: BridgeClient) -> None:
        cfg = self.config
        time.sleep(cfg.startup_delay_ms / 1000.0)
        self._transition(SupervisorState.POLLING)

        last_error: BridgeError | None = None
        for attempt in range(1, cfg.health_attempts + 1):
            try:
                client.health()
                return
            except BridgeError as e:
                last_error = e
                logger.warning("Bridge health check {}/{} failed: {}", attempt, cfg.health_attempts, e)
            if attempt < cfg.health_attempts:
                time.sleep(cfg.health_interval_ms / 1000.0)

        logger.error("Bridge server failed to become healthy after {} checks", cfg.health_attempts)
        raise BridgeProcessError(
            "start bridge",
            f"bridge server failed to become healthy after {cfg.health_attempts} checks: {last_error}",
            attempts=cfg.health_attempts,
        ) from last_error

    # ------------------------------------------------------------------
    # Stop
    # ------------------------------------------------------------------

    def stop(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.stop()
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None
        if self._state is not SupervisorState.IDLE:
            self._transition(SupervisorState.STOPPED)

    def __enter__(self) -> "BridgeProcessSupervisor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def _retry_policy(attempts: int, cfg: BridgeRuntimeConfig) -> RetryPolicy:
    if attempts <= 1:
        return RetryPolicy.no_retry()
    return RetryPolicy.bounded(
        attempts,
        initial_delay_ms=cfg.retry_initial_delay_ms,
        factor=cfg.retry_factor,
    )
