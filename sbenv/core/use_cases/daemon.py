"""
Daemon use cases — start / stop / restart / status / logs for the
environment found from the working directory (or an explicit config).

The vertical slice: find the local config → load registry and defaults →
resolve the binary → hand over to the supervisor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sbenv.core.config.loader import ConfigError, load_env_config
from sbenv.core.context import SbenvContext
from sbenv.core.models.environment import Registry
from sbenv.core.services.binary.install import BinaryResolutionError
from sbenv.core.services.binary.resolver import ResolvedBinary
from sbenv.core.services.supervisor.daemon import (
    DaemonError,
    DaemonStartError,
    DaemonStatus,
    EnvironmentContext,
    StartResult,
    StopResult,
)

logger = logging.getLogger(__name__)


@dataclass
class DaemonResult:
    """Result of one lifecycle action."""

    action: str = ""
    root: Path | None = None
    binary: ResolvedBinary | None = None
    start: StartResult | None = None
    stop: StopResult | None = None
    status: DaemonStatus | None = None
    log_lines: list[str] = field(default_factory=list)
    log_path: Path | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"action": self.action}
        if self.error:
            result["error"] = self.error
            if self.log_path:
                result["log_path"] = str(self.log_path)
            return result

        result["root"] = str(self.root) if self.root else None
        result["log_path"] = str(self.log_path) if self.log_path else None
        if self.binary:
            result["binary"] = self.binary.to_dict()
        if self.start:
            result["start"] = self.start.to_dict()
        if self.stop:
            result["stop"] = self.stop.to_dict()
        if self.status:
            result["status"] = self.status.to_dict()
        if self.action == "logs":
            result["lines"] = self.log_lines
        return result


def _load(
    ctx: SbenvContext,
    result: DaemonResult,
    config_path: Path | None,
    start_dir: Path | None,
) -> tuple[EnvironmentContext, Registry] | None:
    try:
        config_path, _ = load_env_config(config_path, ctx.paths, start_dir)
        registry = ctx.load_registry()
        env = EnvironmentContext.load(config_path, registry)
    except ConfigError as e:
        result.error = str(e)
        return None
    result.root = env.root
    result.log_path = env.paths.log_file
    if env.record is None:
        logger.warning("%s is not registered; run 'sbenv init' to assign a port", env.root)
    return env, registry


def _resolve(ctx: SbenvContext, env: EnvironmentContext, result: DaemonResult) -> str | None:
    try:
        result.binary = ctx.resolver().resolve_for_environment(env.record, ctx.load_defaults())
    except BinaryResolutionError as e:
        result.error = str(e)
        return None
    logger.info("Using %s binary %s", result.binary.source, result.binary.path)
    return result.binary.path


def start_daemon(
    ctx: SbenvContext,
    config_path: Path | None = None,
    start_dir: Path | None = None,
    *,
    force: bool = False,
    probe: bool = True,
) -> DaemonResult:
    result = DaemonResult(action="start")
    loaded = _load(ctx, result, config_path, start_dir)
    if loaded is None:
        return result
    env, registry = loaded

    binary = _resolve(ctx, env, result)
    if binary is None:
        return result

    try:
        result.start = ctx.supervisor().start(env, binary, registry, force=force, probe=probe)
    except DaemonStartError as e:
        result.error = str(e)
        result.log_path = e.log_path
    except DaemonError as e:
        result.error = str(e)
    return result


def stop_daemon(
    ctx: SbenvContext,
    config_path: Path | None = None,
    start_dir: Path | None = None,
) -> DaemonResult:
    result = DaemonResult(action="stop")
    loaded = _load(ctx, result, config_path, start_dir)
    if loaded is None:
        return result
    env, _ = loaded

    try:
        result.stop = ctx.supervisor().stop(env)
    except DaemonError as e:
        result.error = str(e)
    return result


def restart_daemon(
    ctx: SbenvContext,
    config_path: Path | None = None,
    start_dir: Path | None = None,
    *,
    probe: bool = True,
) -> DaemonResult:
    result = DaemonResult(action="restart")
    loaded = _load(ctx, result, config_path, start_dir)
    if loaded is None:
        return result
    env, registry = loaded

    binary = _resolve(ctx, env, result)
    if binary is None:
        return result

    try:
        result.start = ctx.supervisor().restart(env, binary, registry, probe=probe)
    except DaemonStartError as e:
        result.error = str(e)
        result.log_path = e.log_path
    except DaemonError as e:
        result.error = str(e)
    return result


def daemon_status(
    ctx: SbenvContext,
    config_path: Path | None = None,
    start_dir: Path | None = None,
    *,
    probe: bool = True,
) -> DaemonResult:
    result = DaemonResult(action="status")
    loaded = _load(ctx, result, config_path, start_dir)
    if loaded is None:
        return result
    env, registry = loaded
    result.status = ctx.supervisor().status(env, registry, probe=probe)
    return result


def daemon_logs(
    ctx: SbenvContext,
    config_path: Path | None = None,
    start_dir: Path | None = None,
    *,
    lines: int = 50,
) -> DaemonResult:
    result = DaemonResult(action="logs")
    loaded = _load(ctx, result, config_path, start_dir)
    if loaded is None:
        return result
    env, _ = loaded
    result.log_lines = ctx.supervisor().tail_logs(env, lines)
    return result
