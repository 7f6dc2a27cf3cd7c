"""
Environment use cases — init, remove, list, info, activate/deactivate.

Each function loads what it needs through the ``SbenvContext``, performs
one action and returns a result dataclass.  Expected failures (bad config,
no free port, unresolvable binary) end up in ``result.error``; the CLI
decides how to show them.
"""

from __future__ import annotations

import logging
import random
import secrets
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sbenv.core.config.loader import ConfigError, load_env_config, load_local_config, save_local_config
from sbenv.core.config.paths import EnvPaths
from sbenv.core.context import SbenvContext
from sbenv.core.data import constants as C
from sbenv.core.models.environment import (
    BinaryInfo,
    EnvironmentRecord,
    GlobalDefaults,
    LocalConfig,
    Marker,
)
from sbenv.core.persistence.documents import read_marker, write_marker
from sbenv.core.services.binary.install import BinaryResolutionError
from sbenv.core.services.binary.resolver import ResolvedBinary
from sbenv.core.services.ports import PortRangeExhaustedError, allocate_port
from sbenv.core.services.registry import find_record, identity_key, register, unregister
from sbenv.core.services.supervisor.daemon import (
    DaemonError,
    DaemonStatus,
    EnvironmentContext,
    StopResult,
)
from sbenv.core.services.supervisor.pidfile import check_pid
from sbenv.core.use_cases.binary import pinned_info

logger = logging.getLogger(__name__)

SHELLS = ("sh", "bash", "zsh", "fish")


def _record_dict(record: EnvironmentRecord | None) -> dict[str, Any] | None:
    return record.model_dump(mode="json", exclude_none=True) if record else None


# ── Init ────────────────────────────────────────────────────────


@dataclass
class InitResult:
    """Result of creating (or re-initializing) an environment."""

    root: Path | None = None
    config_path: Path | None = None
    key: str = ""
    record: EnvironmentRecord | None = None
    binary: ResolvedBinary | None = None
    created: bool = False
    marker_written: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {
            "root": str(self.root),
            "config_path": str(self.config_path),
            "key": self.key,
            "created": self.created,
            "marker_written": self.marker_written,
            "record": _record_dict(self.record),
            "binary": self.binary.to_dict() if self.binary else None,
        }


def init_environment(
    ctx: SbenvContext,
    root: Path,
    email: str | None = None,
    *,
    server_url: str | None = None,
    name: str | None = None,
    binary_spec: str | None = None,
    dev_mode: bool | None = None,
    rng: random.Random | None = None,
) -> InitResult:
    """Create an environment at ``root``, or refresh an existing one.

    A new environment gets a local config (with ``client_url`` on a freshly
    allocated port and a random control-API token), a registry record and
    a marker file.  Re-running on an existing root keeps the port, the
    token and any daemon-written fields, updating only what was passed.

    Args:
        ctx: Invocation context.
        root: Environment root directory (created if missing).
        email: Principal; required unless the root already has a config.
        server_url: Server the daemon talks to.
        name: Optional display name.
        binary_spec: Version or path to resolve and pin.
        dev_mode: Daemon dev mode flag.
        rng: Random source for port allocation.
    """
    result = InitResult()
    root = Path(root).expanduser().absolute()
    env_paths = EnvPaths(root)
    result.root = root
    result.config_path = env_paths.config_file

    existing_config: LocalConfig | None = None
    if env_paths.config_file.is_file():
        try:
            existing_config = load_local_config(env_paths.config_file)
        except ConfigError as e:
            result.error = str(e)
            return result

    email = email or (existing_config.email if existing_config else "")
    if not email:
        result.error = "An email is required to create an environment (--email)."
        return result

    # Resolve before touching the filesystem so a bad spec leaves nothing behind.
    if binary_spec:
        try:
            result.binary = ctx.resolver().resolve(binary_spec)
        except BinaryResolutionError as e:
            result.error = str(e)
            return result

    root.mkdir(parents=True, exist_ok=True)
    env_paths.log_file.parent.mkdir(parents=True, exist_ok=True)

    registry = ctx.load_registry()
    previous = registry.environments.get(identity_key(root, email))
    try:
        port = previous.port if previous and previous.port else allocate_port(registry, rng=rng)
    except PortRangeExhaustedError as e:
        result.error = str(e)
        return result

    config = existing_config or LocalConfig(email=email)
    config.email = email
    if server_url:
        config.server_url = server_url
    if dev_mode is not None:
        config.dev_mode = dev_mode
    if not config.client_url:
        config.client_url = f"http://127.0.0.1:{port}"
    if not config.client_token:
        config.client_token = secrets.token_hex(16)
    if not config.data_dir:
        config.data_dir = str(root)
    save_local_config(config, env_paths.config_file)
    result.created = existing_config is None

    key, record = register(registry, root, config, name=name, port=port)
    if result.binary is not None and binary_spec:
        record.binary = pinned_info(binary_spec, result.binary)
    ctx.save_registry(registry)
    result.key = key
    result.record = record

    marker_binary = (
        BinaryInfo(path=record.binary.path, version=record.binary.version)
        if record.binary else None
    )
    result.marker_written = write_marker(
        Marker(email=email, port=record.port, server_url=config.server_url, binary=marker_binary),
        env_paths.marker_file,
    )

    logger.info("%s environment %s", "Created" if result.created else "Updated", key)
    return result


# ── Remove ──────────────────────────────────────────────────────


@dataclass
class RemoveResult:
    root: Path | None = None
    removed_keys: list[str] = field(default_factory=list)
    stop: StopResult | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {
            "root": str(self.root),
            "removed_keys": self.removed_keys,
            "stop": self.stop.to_dict() if self.stop else None,
        }


def remove_environment(ctx: SbenvContext, root: Path) -> RemoveResult:
    """Stop the environment's daemon (if running) and forget every record for it.

    Files under ``root`` are left in place.
    """
    root = Path(root).expanduser().absolute()
    result = RemoveResult(root=root)
    env_paths = EnvPaths(root)

    try:
        config = load_local_config(env_paths.config_file)
    except ConfigError:
        config = LocalConfig()
    env = EnvironmentContext(root=root, config_path=env_paths.config_file, config=config)

    try:
        result.stop = ctx.supervisor().stop(env)
    except DaemonError as e:
        logger.warning("Could not stop daemon for %s: %s", root, e)

    registry = ctx.load_registry()
    result.removed_keys = unregister(registry, root)
    if not result.removed_keys:
        result.error = f"No registered environment at {root}"
        return result
    ctx.save_registry(registry)
    return result


# ── List ────────────────────────────────────────────────────────


@dataclass
class EnvironmentEntry:
    key: str
    record: EnvironmentRecord
    running: bool = False
    pid: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.record.display_name,
            "path": self.record.path,
            "email": self.record.email,
            "port": self.record.port,
            "server_url": self.record.server_url,
            "binary": self.record.binary.label() if self.record.binary else None,
            "running": self.running,
            "pid": self.pid,
        }


@dataclass
class ListResult:
    entries: list[EnvironmentEntry] = field(default_factory=list)
    default_binary: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "environments": [e.to_dict() for e in self.entries],
            "default_binary": self.default_binary,
        }


def list_environments(ctx: SbenvContext) -> ListResult:
    """Every registered environment with its daemon's running state."""
    registry = ctx.load_registry()
    result = ListResult(default_binary=ctx.load_defaults().binary)

    for key, record in sorted(registry.environments.items()):
        state = check_pid(EnvPaths(Path(record.path)).pid_file, ctx.adapters.processes)
        result.entries.append(
            EnvironmentEntry(key=key, record=record, running=state.running, pid=state.pid if state.running else None)
        )
    return result


# ── Info ────────────────────────────────────────────────────────


@dataclass
class InfoResult:
    root: Path | None = None
    config_path: Path | None = None
    config: LocalConfig | None = None
    key: str | None = None
    record: EnvironmentRecord | None = None
    marker: Marker | None = None
    defaults: GlobalDefaults | None = None
    daemon: DaemonStatus | None = None
    adapters: dict[str, dict[str, Any]] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        config = None
        if self.config:
            config = self.config.model_dump(mode="json", exclude_none=True)
            for secret in ("client_token", *C.CREDENTIAL_FIELDS):
                if config.get(secret):
                    config[secret] = "***"
        return {
            "root": str(self.root),
            "config_path": str(self.config_path),
            "key": self.key,
            "registered": self.record is not None,
            "record": _record_dict(self.record),
            "config": config,
            "marker": self.marker.model_dump(mode="json", exclude_none=True) if self.marker else None,
            "default_binary": self.defaults.binary if self.defaults else None,
            "daemon": self.daemon.to_dict() if self.daemon else None,
            "adapters": self.adapters,
        }


def environment_info(
    ctx: SbenvContext,
    config_path: Path | None = None,
    start_dir: Path | None = None,
    *,
    probe: bool = True,
) -> InfoResult:
    """Everything known about the current environment."""
    result = InfoResult()
    try:
        config_path, config = load_env_config(config_path, ctx.paths, start_dir)
    except ConfigError as e:
        result.error = str(e)
        return result

    registry = ctx.load_registry()
    env = EnvironmentContext.load(config_path, registry)
    result.root = env.root
    result.config_path = config_path
    result.config = config
    result.key, result.record = find_record(registry, env.root)
    result.marker = read_marker(env.paths.marker_file)
    result.defaults = ctx.load_defaults()
    result.daemon = ctx.supervisor().status(env, registry, probe=probe)
    result.adapters = ctx.adapters.adapter_status()
    return result


# ── Activate / deactivate ───────────────────────────────────────


def _export(shell: str, name: str, value: str) -> str:
    if shell == "fish":
        return f"set -gx {name} {shlex.quote(value)};"
    return f"export {name}={shlex.quote(value)}"


def _unset(shell: str, name: str) -> str:
    if shell == "fish":
        return f"set -e {name};"
    return f"unset {name}"


def activation_script(root: Path, config_path: Path, shell: str = "sh", name: str = "") -> str:
    """Shell lines that point the daemon's clients at this environment.

    Meant for ``eval "$(sbenv activate)"``; nothing is written to rc files.
    """
    lines = [
        _export(shell, "SYFTBOX_CONFIG_PATH", str(config_path)),
        _export(shell, "SBENV_ROOT", str(root)),
        _export(shell, "SBENV_ACTIVE", name or root.name),
    ]
    return "\n".join(lines) + "\n"


def deactivation_script(shell: str = "sh") -> str:
    lines = [_unset(shell, var) for var in ("SYFTBOX_CONFIG_PATH", "SBENV_ROOT", "SBENV_ACTIVE")]
    return "\n".join(lines) + "\n"
