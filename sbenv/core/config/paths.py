"""
Host and environment paths.

Every host-wide location (registry, defaults, binary cache, the daemon's
global config slot) hangs off one ``SbenvPaths`` value.  Entry points build
it once and pass it down; nothing reads these locations from module state.

Overrides:
    SBENV_HOME       sbenv's own directory (default: ~/.sbenv)
    SBENV_USER_HOME  home whose ~/.syftbox/config.json is the global slot
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from sbenv.core.data import constants as C


@dataclass(frozen=True)
class SbenvPaths:
    """Host-wide file locations."""

    home: Path
    user_home: Path

    @classmethod
    def from_env(cls) -> SbenvPaths:
        user_home = Path(os.environ.get("SBENV_USER_HOME") or Path.home())
        home = Path(os.environ.get("SBENV_HOME") or user_home / C.SBENV_DIR_NAME)
        return cls(home=home, user_home=user_home)

    @property
    def registry_file(self) -> Path:
        return self.home / C.REGISTRY_FILE

    @property
    def defaults_file(self) -> Path:
        return self.home / C.DEFAULTS_FILE

    @property
    def cache_dir(self) -> Path:
        return self.home / C.BINARY_CACHE_DIR

    @property
    def global_config(self) -> Path:
        """The fixed location the daemon always consults."""
        return self.user_home / C.DAEMON_DIR_NAME / C.LOCAL_CONFIG_FILE


@dataclass(frozen=True)
class EnvPaths:
    """Per-environment file locations under an environment root."""

    root: Path

    @property
    def daemon_dir(self) -> Path:
        return self.root / C.DAEMON_DIR_NAME

    @property
    def config_file(self) -> Path:
        return self.daemon_dir / C.LOCAL_CONFIG_FILE

    @property
    def pid_file(self) -> Path:
        return self.daemon_dir / C.PID_FILE

    @property
    def log_file(self) -> Path:
        return self.daemon_dir / C.LOG_DIR / C.LOG_FILE

    @property
    def marker_file(self) -> Path:
        return self.root / C.MARKER_FILE


def release_repo() -> str:
    """GitHub ``owner/repo`` that publishes daemon releases."""
    return os.environ.get("SBENV_RELEASE_REPO") or C.DEFAULT_RELEASE_REPO
