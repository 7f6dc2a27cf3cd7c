"""
Daemon supervisor — start, stop, restart and inspect an environment's daemon.

Per environment the daemon is in one of these states:

    absent    no PID file
    running   PID file names a live process
    stale     PID file names a dead process (cleaned up on sight)

Each CLI invocation performs one action and exits; the daemon itself runs
detached and outlives it.  Every wait below is a fixed sleep or a bounded
poll, so no operation can block forever.

Orphan detection matches the environment's config path as a substring of
each process's command line.  That can miss a process whose command line
was truncated and can also match an unrelated process that happens to
mention the same path; it is kept deliberately simple.
"""

from __future__ import annotations

import logging
import os
import signal
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from sbenv.adapters.base import ProcessInfo
from sbenv.adapters.registry import AdapterSet
from sbenv.core.config.loader import env_root, load_local_config
from sbenv.core.config.paths import EnvPaths, SbenvPaths
from sbenv.core.models.environment import EnvironmentRecord, LocalConfig, Registry
from sbenv.core.observability.health import ProbeResult, probe_base_url, probe_daemon
from sbenv.core.services.registry import find_record, port_for_path
from sbenv.core.services.supervisor.config_swap import GlobalConfigSwap
from sbenv.core.services.supervisor.pidfile import PidState, check_pid, remove_pid, write_pid

logger = logging.getLogger(__name__)

_SIGKILL = getattr(signal, "SIGKILL", signal.SIGTERM)

ABSENT = "absent"
RUNNING = "running"
STALE = "stale"


class DaemonError(Exception):
    """A lifecycle operation on the daemon failed."""


class DaemonStartError(DaemonError):
    """The daemon could not be launched or exited right after launch."""

    def __init__(self, message: str, log_path: Path):
        self.log_path = log_path
        super().__init__(f"{message} — see {log_path}")


@dataclass(frozen=True)
class SupervisorTimings:
    """Fixed delays and poll budgets (seconds / counts)."""

    startup_delay: float = 2.0
    swap_settle: float = 1.0
    stop_poll_interval: float = 1.0
    stop_attempts: int = 10
    kill_after_attempts: int = 5
    orphan_grace: float = 1.0
    restart_delay: float = 1.0
    probe_timeout: float = 2.0

    @classmethod
    def instant(cls) -> SupervisorTimings:
        """No waiting at all (for fakes)."""
        return cls(
            startup_delay=0, swap_settle=0, stop_poll_interval=0,
            orphan_grace=0, restart_delay=0, probe_timeout=0.5,
        )


@dataclass
class EnvironmentContext:
    """Everything the supervisor needs to know about one environment."""

    root: Path
    config_path: Path
    config: LocalConfig
    record: EnvironmentRecord | None = None

    @property
    def paths(self) -> EnvPaths:
        return EnvPaths(self.root)

    @classmethod
    def load(cls, config_path: Path, registry: Registry | None = None) -> EnvironmentContext:
        """Build from a local config path.

        Raises:
            ConfigError: If the config cannot be read.
        """
        root = env_root(config_path)
        record = find_record(registry, root)[1] if registry else None
        return cls(
            root=root,
            config_path=config_path,
            config=load_local_config(config_path),
            record=record,
        )


@dataclass
class StartResult:
    pid: int
    already_running: bool = False
    log_path: Path | None = None
    argv: list[str] = field(default_factory=list)
    orphans_killed: list[int] = field(default_factory=list)
    probe: ProbeResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pid": self.pid,
            "already_running": self.already_running,
            "log_path": str(self.log_path) if self.log_path else None,
            "argv": self.argv,
            "orphans_killed": self.orphans_killed,
            "probe": self.probe.to_dict() if self.probe else None,
        }


@dataclass
class StopResult:
    pid: int | None = None
    was_running: bool = False
    forced: bool = False
    exited: bool = True
    stale_cleaned: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "pid": self.pid,
            "was_running": self.was_running,
            "forced": self.forced,
            "exited": self.exited,
            "stale_cleaned": self.stale_cleaned,
        }


@dataclass
class DaemonStatus:
    state: str = ABSENT
    pid: int | None = None
    log_path: Path | None = None
    health: ProbeResult | None = None

    @property
    def running(self) -> bool:
        return self.state == RUNNING

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "running": self.running,
            "pid": self.pid,
            "log_path": str(self.log_path) if self.log_path else None,
            "health": self.health.to_dict() if self.health else None,
        }


class Supervisor:
    """Lifecycle control for environment daemons."""

    def __init__(
        self,
        paths: SbenvPaths,
        adapters: AdapterSet,
        timings: SupervisorTimings | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.paths = paths
        self.adapters = adapters
        self.timings = timings or SupervisorTimings()
        self._sleep = sleep

    def _wait(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)

    # ── Command line ────────────────────────────────────────────

    def bind_address(self, env: EnvironmentContext, registry: Registry | None) -> str | None:
        """``host:port`` for the daemon's HTTP listener."""
        if env.config.client_url:
            netloc = urlparse(env.config.client_url).netloc
            if netloc:
                return netloc
        port = env.record.port if env.record and env.record.port else 0
        if not port and registry is not None:
            port = port_for_path(registry, env.root)
        return f"127.0.0.1:{port}" if port else None

    def build_argv(
        self, binary: str, env: EnvironmentContext, registry: Registry | None,
    ) -> list[str]:
        argv = [binary, "--config", str(env.config_path), "daemon"]
        addr = self.bind_address(env, registry)
        if addr:
            argv += ["--http-addr", addr]
        if env.config.client_token:
            argv += ["--http-token", env.config.client_token]
        return argv

    # ── Orphans ─────────────────────────────────────────────────

    def find_orphans(
        self, env: EnvironmentContext, tracked_pid: int | None = None,
    ) -> list[ProcessInfo]:
        """Processes mentioning this environment's config that we don't track."""
        needles = {str(env.config_path)}
        try:
            needles.add(str(env.config_path.resolve()))
        except OSError:
            pass
        me = os.getpid()
        return [
            proc for proc in self.adapters.processes.list_processes()
            if proc.pid not in (me, tracked_pid)
            and any(n in proc.cmdline for n in needles)
        ]

    def kill_orphans(
        self, env: EnvironmentContext, tracked_pid: int | None = None,
    ) -> list[int]:
        """SIGTERM untracked instances, wait briefly, SIGKILL the survivors."""
        orphans = self.find_orphans(env, tracked_pid)
        if not orphans:
            return []

        processes = self.adapters.processes
        for proc in orphans:
            logger.warning("Terminating orphaned daemon PID %d: %s", proc.pid, proc.cmdline)
            processes.signal(proc.pid, signal.SIGTERM)

        self._wait(self.timings.orphan_grace)

        for proc in orphans:
            if processes.is_running(proc.pid):
                logger.warning("Orphan PID %d ignored SIGTERM — killing", proc.pid)
                processes.signal(proc.pid, _SIGKILL)
        return [p.pid for p in orphans]

    # ── Lifecycle ───────────────────────────────────────────────

    def start(
        self,
        env: EnvironmentContext,
        binary: str,
        registry: Registry | None = None,
        *,
        force: bool = False,
        probe: bool = True,
    ) -> StartResult:
        """Start the daemon unless it is already running.

        Raises:
            DaemonStartError: If the process could not be launched or died
                during the startup window.
        """
        pid_file = env.paths.pid_file
        log_path = env.paths.log_file

        current = check_pid(pid_file, self.adapters.processes)
        if current.running and current.pid is not None:
            if not force:
                logger.info("Daemon already running (PID %d)", current.pid)
                return StartResult(pid=current.pid, already_running=True, log_path=log_path)
            logger.info("Force start: stopping PID %d first", current.pid)
            self.stop(env)

        orphans = self.kill_orphans(env)
        argv = self.build_argv(binary, env, registry)
        self._log_banner(log_path, argv)

        settle = min(self.timings.swap_settle, self.timings.startup_delay)
        with GlobalConfigSwap(self.paths.global_config, env.config_path) as swap:
            try:
                pid = self.adapters.spawner.spawn(argv, log_path=log_path, cwd=env.root)
            except OSError as e:
                self._log_line(log_path, f"failed to launch {argv[0]}: {e}")
                remove_pid(pid_file)
                raise DaemonStartError("Daemon failed to start", log_path) from e
            if swap.swapped:
                # Let the daemon read the swapped-in config before we put it back.
                self._wait(settle)

        self._wait(self.timings.startup_delay - (settle if swap.swapped else 0))

        if not self.adapters.processes.is_running(pid):
            remove_pid(pid_file)
            raise DaemonStartError(f"Daemon failed to start (PID {pid} exited)", log_path)

        write_pid(pid_file, pid)
        logger.info("Daemon started (PID %d)", pid)

        result = StartResult(pid=pid, log_path=log_path, argv=argv, orphans_killed=orphans)
        if probe:
            result.probe = self.probe(env, registry)
        return result

    def stop(self, env: EnvironmentContext) -> StopResult:
        """SIGTERM, poll, escalate to SIGKILL partway through the budget.

        Raises:
            DaemonError: If the process outlived the whole budget without
                ever being killed (only possible with a custom budget).
        """
        pid_file = env.paths.pid_file
        processes = self.adapters.processes

        current = check_pid(pid_file, processes)
        if not current.running or current.pid is None:
            return StopResult(pid=current.pid, was_running=False, stale_cleaned=current.stale)

        pid = current.pid
        logger.info("Stopping daemon (PID %d)", pid)
        processes.signal(pid, signal.SIGTERM)

        forced = False
        exited = False
        for attempt in range(self.timings.stop_attempts):
            if not processes.is_running(pid):
                exited = True
                break
            if attempt >= self.timings.kill_after_attempts and not forced:
                logger.warning("PID %d ignored SIGTERM — sending SIGKILL", pid)
                processes.signal(pid, _SIGKILL)
                forced = True
            self._wait(self.timings.stop_poll_interval)
        else:
            exited = not processes.is_running(pid)

        if exited or forced:
            remove_pid(pid_file)
        if not exited:
            if not forced:
                raise DaemonError(f"Daemon (PID {pid}) did not exit")
            logger.warning("PID %d still present after SIGKILL", pid)

        return StopResult(pid=pid, was_running=True, forced=forced, exited=exited)

    def restart(
        self,
        env: EnvironmentContext,
        binary: str,
        registry: Registry | None = None,
        *,
        probe: bool = True,
    ) -> StartResult:
        try:
            self.stop(env)
        except (DaemonError, OSError) as e:
            logger.warning("Stop before restart failed: %s", e)
        self._wait(self.timings.restart_delay)
        return self.start(env, binary, registry, force=True, probe=probe)

    # ── Inspection ──────────────────────────────────────────────

    def pid_state(self, env: EnvironmentContext) -> PidState:
        return check_pid(env.paths.pid_file, self.adapters.processes)

    def probe(self, env: EnvironmentContext, registry: Registry | None) -> ProbeResult:
        return probe_daemon(
            self.adapters.http,
            probe_base_url(env.config, registry, env.root),
            token=env.config.client_token,
            timeout=self.timings.probe_timeout,
        )

    def status(
        self,
        env: EnvironmentContext,
        registry: Registry | None = None,
        *,
        probe: bool = True,
    ) -> DaemonStatus:
        current = self.pid_state(env)
        if current.running:
            state = RUNNING
        elif current.stale:
            state = STALE
        else:
            state = ABSENT

        result = DaemonStatus(state=state, pid=current.pid, log_path=env.paths.log_file)
        if probe and current.running:
            result.health = self.probe(env, registry)
        return result

    def tail_logs(self, env: EnvironmentContext, lines: int = 50) -> list[str]:
        """Last ``lines`` lines of the daemon log (stale PID files cleaned first)."""
        self.pid_state(env)
        log_path = env.paths.log_file
        if not log_path.is_file():
            return []
        content = log_path.read_text(encoding="utf-8", errors="replace").splitlines()
        return content[-lines:] if lines > 0 else content

    # ── Log helpers ─────────────────────────────────────────────

    def _log_line(self, log_path: Path, message: str) -> None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(f"[sbenv {stamp}] {message}\n")

    def _log_banner(self, log_path: Path, argv: list[str]) -> None:
        shown = list(argv)
        if "--http-token" in shown:
            shown[shown.index("--http-token") + 1] = "***"
        self._log_line(log_path, "starting: " + " ".join(shown))

