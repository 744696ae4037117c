"""Find the on-disk bridge package, downloading it as a last resort."""

from __future__ import annotations

import os
import shutil
import sys
from pathlib import Path

from loguru import logger

from kyco_bridge.config.schema import DEFAULT_RELEASE_URL
from kyco_bridge.errors import BridgeInstallError
from kyco_bridge.utils.process import run_command

ENV_BRIDGE_PATH = "KYCO_BRIDGE_PATH"
BRIDGE_DIRNAME = "bridge"
ARCHIVE_NAME = "kyco-bridge.tar.gz"


def _default_executable() -> Path:
    argv0 = sys.argv[0] if sys.argv and sys.argv[0] else sys.executable
    return Path(argv0).resolve()


class BridgeLocator:
    """Resolves the bridge directory.

    Search order, first existing wins:

    1. ``override`` (``KYCO_BRIDGE_PATH`` or ``bridge.path`` in config)
    2. ``bridge/`` next to the running executable
    3. ``bridge/`` in the executable's parent directory
    4. ``bridge/`` under the kyco home (``~/.kyco``)
    5. ``bridge/`` in the current working directory

    If none exists, the release archive is installed into the kyco home.
    """

    def __init__(
        self,
        *,
        override: Path | None = None,
        home: Path | None = None,
        executable: Path | None = None,
        cwd: Path | None = None,
        release_url: str = DEFAULT_RELEASE_URL,
    ) -> None:
        env_override = os.environ.get(ENV_BRIDGE_PATH)
        self.override = Path(env_override).expanduser() if env_override else override
        self.home = home or (Path.home() / ".kyco")
        self.executable = executable or _default_executable()
        self.cwd = cwd
        self.release_url = release_url

    @property
    def home_bridge_dir(self) -> Path:
        return self.home / BRIDGE_DIRNAME

    def candidates(self) -> list[Path]:
        """All discovery locations, in priority order (without installing)."""
        found: list[Path] = []
        if self.override is not None:
            found.append(self.override)
        exe_dir = self.executable.parent
        found.append(exe_dir / BRIDGE_DIRNAME)
        found.append(exe_dir.parent / BRIDGE_DIRNAME)
        found.append(self.home_bridge_dir)
        found.append((self.cwd or Path.cwd()) / BRIDGE_DIRNAME)
        return found

    def find(self) -> Path | None:
        if self.override is not None and not self.override.exists():
            logger.warning("Bridge override {} does not exist; falling back to discovery", self.override)
        for candidate in self.candidates():
            if candidate.exists():
                return candidate
        return None

    def resolve(self) -> Path:
        found = self.find()
        if found is not None:
            logger.debug("Bridge found at {}", found)
            return found

        logger.info("SDK bridge not found, downloading from {}", self.release_url)
        self.install(self.home)
        return self.home_bridge_dir

    def install(self, target_dir: Path) -> Path:
        """Download and unpack the bridge release into ``target_dir``.

        Nothing is left behind on failure: the archive is always removed, and
        a ``bridge/`` directory created by a failed extraction is deleted.
        """
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BridgeInstallError("create install dir", f"cannot create {target_dir}: {e}") from e

        archive = target_dir / ARCHIVE_NAME
        bridge_dir = target_dir / BRIDGE_DIRNAME
        existed_before = bridge_dir.exists()
        try:
            logger.info("Downloading bridge from {}...", self.release_url)
            run_command(
                ["curl", "-L", "-f", "-sS", "-o", str(archive), self.release_url],
                step="download bridge",
            )

            logger.info("Extracting bridge...")
            try:
                run_command(["tar", "-xzf", str(archive), "-C", str(target_dir)], step="extract bridge")
            except BridgeInstallError:
                if not existed_before and bridge_dir.exists():
                    shutil.rmtree(bridge_dir, ignore_errors=True)
                raise
        finally:
            archive.unlink(missing_ok=True)

        if not bridge_dir.is_dir():
            raise BridgeInstallError(
                "extract bridge",
                f"archive from {self.release_url} did not contain a {BRIDGE_DIRNAME}/ directory",
            )
        logger.info("SDK bridge installed to {}", bridge_dir)
        return bridge_dir
