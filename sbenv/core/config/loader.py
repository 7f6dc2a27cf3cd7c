"""
Configuration loader — finds and reads an environment's local config.

The local config (``<root>/.syftbox/config.json``) is the entry point for
every environment command.  It is found by walking up from the working
directory, the same way git finds ``.git``.  Unlike the registry, a missing
or unparsable local config is fatal: there is nothing sensible to fall
back to.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from sbenv.core.config.paths import EnvPaths, SbenvPaths
from sbenv.core.data import constants as C
from sbenv.core.models.environment import LocalConfig
from sbenv.core.persistence.documents import write_json_atomic

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when an environment's local config is invalid or missing."""


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return a == b


def find_env_config(
    start_dir: Path | None = None,
    paths: SbenvPaths | None = None,
) -> Path | None:
    """Search for ``.syftbox/config.json`` starting from a directory, walking up.

    The daemon's global slot (``~/.syftbox/config.json``) looks exactly like
    an environment config from the inside; it is never returned.

    Args:
        start_dir: Directory to start searching from (default: cwd).
        paths: Host paths (for the global slot to skip).

    Returns:
        Path to the environment's config file, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()
    global_slot = paths.global_config if paths else None

    for _ in range(20):  # safety limit
        candidate = EnvPaths(current).config_file
        if candidate.is_file() and not (global_slot and _same_file(candidate, global_slot)):
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def env_root(config_path: Path) -> Path:
    """Environment root for a local config path (``<root>/.syftbox/config.json``)."""
    return config_path.parent.parent.resolve()


def load_local_config(path: Path) -> LocalConfig:
    """Load and validate a local config file.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading local config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a JSON object in {path}, got {type(data).__name__}")

    try:
        return LocalConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e


def save_local_config(config: LocalConfig, path: Path) -> None:
    """Write a local config (atomic), keeping daemon-written extra fields."""
    write_json_atomic(config.model_dump(mode="json", exclude_none=True), path, prefix=".config_")


def load_env_config(
    config_path: Path | None = None,
    paths: SbenvPaths | None = None,
    start_dir: Path | None = None,
) -> tuple[Path, LocalConfig]:
    """Locate and load the current environment's config.

    Args:
        config_path: Explicit config path. If None, searches upward.
        paths: Host paths.
        start_dir: Where the upward search begins (default: cwd).

    Returns:
        (config_path, LocalConfig)

    Raises:
        ConfigError: If no config is found or it cannot be parsed.
    """
    if config_path is None:
        config_path = find_env_config(start_dir, paths)

    if config_path is None:
        raise ConfigError(
            f"No {C.DAEMON_DIR_NAME}/{C.LOCAL_CONFIG_FILE} found. "
            "Run 'sbenv init' to create an environment here."
        )

    return config_path, load_local_config(config_path)
