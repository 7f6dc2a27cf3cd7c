"""
Tests for the daemon supervisor — PID files, the global config swap, and
start / stop / restart / status against the in-memory adapters.
"""

from __future__ import annotations

import json
import signal
from pathlib import Path

import pytest

from sbenv.core.config.loader import save_local_config
from sbenv.core.config.paths import EnvPaths
from sbenv.core.models.environment import LocalConfig, Registry
from sbenv.core.observability.health import HEALTHY, UNREACHABLE
from sbenv.core.services.registry import register
from sbenv.core.services.supervisor import (
    DaemonError,
    DaemonStartError,
    EnvironmentContext,
    GlobalConfigSwap,
    Supervisor,
    SupervisorTimings,
    check_pid,
    read_pid,
    recover_interrupted_swap,
    write_pid,
)
from sbenv.core.services.supervisor.config_swap import aside_path

BINARY = "/opt/syftbox/bin/syftbox"
STATUS_URL = "http://127.0.0.1:7950/v1/status"


@pytest.fixture
def env_and_registry(tmp_path: Path) -> tuple[EnvironmentContext, Registry]:
    root = tmp_path / "envs" / "alice"
    config = LocalConfig(
        email="alice@example.com",
        client_url="http://127.0.0.1:7950",
        client_token="tok-123",
    )
    save_local_config(config, EnvPaths(root).config_file)
    registry = Registry()
    register(registry, root, config, port=7950)
    return EnvironmentContext.load(EnvPaths(root).config_file, registry), registry


@pytest.fixture
def env(env_and_registry) -> EnvironmentContext:
    return env_and_registry[0]


@pytest.fixture
def registry(env_and_registry) -> Registry:
    return env_and_registry[1]


@pytest.fixture
def supervisor(ctx) -> Supervisor:
    return ctx.supervisor()


# ── PID file ─────────────────────────────────────────────────────────


class TestPidFile:
    def test_missing(self, tmp_path, adapters):
        state = check_pid(tmp_path / "syftbox.pid", adapters.processes)
        assert (state.pid, state.running, state.stale) == (None, False, False)

    def test_live(self, tmp_path, adapters):
        path = tmp_path / "syftbox.pid"
        write_pid(path, 4242)
        adapters.processes.add(4242, "syftbox daemon")
        state = check_pid(path, adapters.processes)
        assert state.running and state.pid == 4242
        assert path.exists()

    def test_stale_is_removed(self, tmp_path, adapters):
        path = tmp_path / "syftbox.pid"
        write_pid(path, 4242)
        state = check_pid(path, adapters.processes)
        assert state.stale and not state.running
        assert state.pid == 4242
        assert not path.exists()

    def test_garbled_is_removed(self, tmp_path, adapters):
        path = tmp_path / "syftbox.pid"
        path.write_text("not a pid\n")
        assert read_pid(path) is None
        state = check_pid(path, adapters.processes)
        assert state.stale
        assert not path.exists()


# ── Global config swap ───────────────────────────────────────────────


class TestGlobalConfigSwap:
    ORIGINAL = b'{\n    "email": "owner@example.com",\n    "refresh_token": "owner-rt"\n}'

    @pytest.fixture
    def slots(self, tmp_path) -> tuple[Path, Path]:
        global_path = tmp_path / "home" / ".syftbox" / "config.json"
        global_path.parent.mkdir(parents=True)
        global_path.write_bytes(self.ORIGINAL)
        local = tmp_path / "env" / ".syftbox" / "config.json"
        local.parent.mkdir(parents=True)
        local.write_text(json.dumps({"email": "alice@example.com", "client_token": "t"}))
        return global_path, local

    def test_swaps_and_restores_byte_for_byte(self, slots):
        global_path, local = slots
        local_before = local.read_bytes()
        with GlobalConfigSwap(global_path, local) as swap:
            assert swap.swapped
            assert global_path.read_bytes() == local_before
            assert aside_path(global_path).read_bytes() == self.ORIGINAL
        assert global_path.read_bytes() == self.ORIGINAL
        assert not aside_path(global_path).exists()
        assert local.read_bytes() == local_before

    def test_exception_in_body_restores_and_propagates(self, slots):
        global_path, local = slots
        with pytest.raises(RuntimeError, match="spawn blew up"):
            with GlobalConfigSwap(global_path, local):
                raise RuntimeError("spawn blew up")
        assert global_path.read_bytes() == self.ORIGINAL
        assert not aside_path(global_path).exists()

    def test_no_global_file_no_swap(self, tmp_path, slots):
        _, local = slots
        missing = tmp_path / "nobody" / ".syftbox" / "config.json"
        with GlobalConfigSwap(missing, local) as swap:
            assert not swap.swapped
        assert not missing.exists()

    def test_global_is_env_config(self, slots):
        _, local = slots
        before = local.read_bytes()
        with GlobalConfigSwap(local, local) as swap:
            assert not swap.swapped
        assert local.read_bytes() == before

    def test_daemon_written_credentials_are_kept(self, slots):
        global_path, local = slots
        with GlobalConfigSwap(global_path, local):
            data = json.loads(global_path.read_text())
            data["refresh_token"] = "fresh-rt"
            global_path.write_text(json.dumps(data))
        assert global_path.read_bytes() == self.ORIGINAL
        restored = json.loads(local.read_text())
        assert restored["refresh_token"] == "fresh-rt"
        assert restored["client_token"] == "t"

    def test_owned_fields_restored_from_backup(self, slots):
        global_path, local = slots
        before = local.read_bytes()
        with GlobalConfigSwap(global_path, local):
            local.write_text(json.dumps({"email": "clobbered@example.com"}))
        assert local.read_bytes() == before

    def test_interrupted_swap_recovered(self, slots):
        global_path, local = slots
        # A previous run died between the two renames.
        global_path.replace(aside_path(global_path))
        global_path.write_bytes(local.read_bytes())

        assert recover_interrupted_swap(global_path) is True
        assert global_path.read_bytes() == self.ORIGINAL
        assert recover_interrupted_swap(global_path) is False


# ── Command line ─────────────────────────────────────────────────────


class TestBuildArgv:
    def test_full(self, supervisor, env, registry):
        argv = supervisor.build_argv(BINARY, env, registry)
        assert argv == [
            BINARY, "--config", str(env.config_path), "daemon",
            "--http-addr", "127.0.0.1:7950", "--http-token", "tok-123",
        ]

    def test_registry_port_when_no_client_url(self, supervisor, env, registry):
        env.config.client_url = ""
        env.config.client_token = None
        argv = supervisor.build_argv(BINARY, env, registry)
        assert argv[-2:] == ["--http-addr", "127.0.0.1:7950"]

    def test_no_address_at_all(self, supervisor, env):
        env.config.client_url = ""
        env.record = None
        argv = supervisor.build_argv(BINARY, env, Registry())
        assert "--http-addr" not in argv


# ── Start ────────────────────────────────────────────────────────────


class TestStart:
    def test_start_writes_pid(self, supervisor, env, registry, adapters):
        result = supervisor.start(env, BINARY, registry)
        assert result.pid == 40000
        assert not result.already_running
        assert read_pid(env.paths.pid_file) == 40000
        assert adapters.spawner.calls[0][:4] == [BINARY, "--config", str(env.config_path), "daemon"]
        assert result.probe.status == UNREACHABLE

    def test_probe_healthy(self, supervisor, env, registry, adapters):
        adapters.http.statuses[STATUS_URL] = 200
        result = supervisor.start(env, BINARY, registry)
        assert result.probe.status == HEALTHY

    def test_already_running_is_noop(self, supervisor, env, registry, adapters):
        first = supervisor.start(env, BINARY, registry, probe=False)
        second = supervisor.start(env, BINARY, registry, probe=False)
        assert second.already_running
        assert second.pid == first.pid
        assert len(adapters.spawner.calls) == 1

    def test_force_replaces(self, supervisor, env, registry, adapters):
        first = supervisor.start(env, BINARY, registry, probe=False)
        second = supervisor.start(env, BINARY, registry, force=True, probe=False)
        assert second.pid != first.pid
        assert (first.pid, signal.SIGTERM) in adapters.processes.signals
        assert not adapters.processes.is_running(first.pid)
        assert read_pid(env.paths.pid_file) == second.pid

    def test_stale_pid_cleaned_then_started(self, supervisor, env, registry):
        write_pid(env.paths.pid_file, 999)
        result = supervisor.start(env, BINARY, registry, probe=False)
        assert not result.already_running
        assert read_pid(env.paths.pid_file) == result.pid

    def test_dead_on_arrival(self, supervisor, env, registry, adapters):
        adapters.spawner.dies_immediately = True
        with pytest.raises(DaemonStartError) as exc:
            supervisor.start(env, BINARY, registry)
        assert exc.value.log_path == env.paths.log_file
        assert str(env.paths.log_file) in str(exc.value)
        assert not env.paths.pid_file.exists()

    def test_launch_error_points_at_log(self, supervisor, env, registry, adapters, global_config):
        original = global_config.read_bytes()
        adapters.spawner.fail_with = FileNotFoundError(2, "No such file", BINARY)
        with pytest.raises(DaemonStartError):
            supervisor.start(env, BINARY, registry)
        assert "failed to launch" in env.paths.log_file.read_text()
        assert global_config.read_bytes() == original

    def test_unexpected_spawn_error_restores_global(self, supervisor, env, registry, adapters, global_config):
        original = global_config.read_bytes()
        adapters.spawner.fail_with = RuntimeError("boom")
        with pytest.raises(RuntimeError, match="boom"):
            supervisor.start(env, BINARY, registry)
        assert global_config.read_bytes() == original
        assert not aside_path(global_config).exists()

    def test_daemon_sees_env_config_in_global_slot(self, supervisor, env, registry, adapters, global_config):
        original = global_config.read_bytes()
        seen = []
        adapters.spawner.on_spawn = lambda argv: seen.append(global_config.read_bytes())
        supervisor.start(env, BINARY, registry, probe=False)
        assert seen == [env.config_path.read_bytes()]
        assert global_config.read_bytes() == original

    def test_token_masked_in_log_banner(self, supervisor, env, registry):
        supervisor.start(env, BINARY, registry, probe=False)
        banner = env.paths.log_file.read_text().splitlines()[0]
        assert "starting:" in banner
        assert "tok-123" not in banner
        assert "***" in banner

    def test_orphans_terminated(self, supervisor, env, registry, adapters):
        adapters.processes.add(555, f"{BINARY} --config {env.config_path} daemon")
        adapters.processes.add(556, "/usr/bin/unrelated --flag")
        result = supervisor.start(env, BINARY, registry, probe=False)
        assert result.orphans_killed == [555]
        assert (555, signal.SIGTERM) in adapters.processes.signals
        assert adapters.processes.is_running(556)

    def test_stubborn_orphan_killed(self, supervisor, env, registry, adapters):
        adapters.processes.add(555, f"syftbox --config {env.config_path}", stubborn=True)
        supervisor.start(env, BINARY, registry, probe=False)
        assert (555, signal.SIGKILL) in adapters.processes.signals
        assert not adapters.processes.is_running(555)

    def test_waits(self, ctx, env, registry, sleeps, global_config):
        timings = SupervisorTimings(startup_delay=2, swap_settle=1)
        sup = Supervisor(ctx.paths, ctx.adapters, timings, sleep=sleeps.append)
        sup.start(env, BINARY, registry, probe=False)
        assert sleeps == [1, 1]

    def test_waits_without_swap(self, ctx, env, registry, sleeps):
        timings = SupervisorTimings(startup_delay=2, swap_settle=1)
        sup = Supervisor(ctx.paths, ctx.adapters, timings, sleep=sleeps.append)
        sup.start(env, BINARY, registry, probe=False)
        assert sleeps == [2]


# ── Stop / restart ───────────────────────────────────────────────────


class TestStop:
    def test_graceful(self, supervisor, env, registry, adapters):
        started = supervisor.start(env, BINARY, registry, probe=False)
        result = supervisor.stop(env)
        assert result.was_running and result.exited and not result.forced
        assert adapters.processes.signals == [(started.pid, signal.SIGTERM)]
        assert not env.paths.pid_file.exists()

    def test_escalates_to_sigkill(self, ctx, env, adapters, sleeps):
        write_pid(env.paths.pid_file, 777)
        adapters.processes.add(777, "syftbox", stubborn=True)
        timings = SupervisorTimings(stop_poll_interval=1, stop_attempts=10, kill_after_attempts=5)
        sup = Supervisor(ctx.paths, adapters, timings, sleep=sleeps.append)

        result = sup.stop(env)
        assert result.forced and result.exited
        assert adapters.processes.signals == [(777, signal.SIGTERM), (777, signal.SIGKILL)]
        assert sleeps == [1] * 6
        assert not env.paths.pid_file.exists()

    def test_not_running(self, supervisor, env):
        result = supervisor.stop(env)
        assert not result.was_running
        assert not result.stale_cleaned

    def test_stale(self, supervisor, env):
        write_pid(env.paths.pid_file, 31337)
        result = supervisor.stop(env)
        assert not result.was_running
        assert result.stale_cleaned
        assert not env.paths.pid_file.exists()

    def test_budget_without_kill_raises(self, ctx, env, adapters):
        write_pid(env.paths.pid_file, 777)
        adapters.processes.add(777, "syftbox", stubborn=True)
        timings = SupervisorTimings(stop_poll_interval=0, stop_attempts=3, kill_after_attempts=5)
        sup = Supervisor(ctx.paths, adapters, timings, sleep=lambda s: None)
        with pytest.raises(DaemonError, match="did not exit"):
            sup.stop(env)
        assert env.paths.pid_file.exists()

    def test_restart(self, supervisor, env, registry, adapters):
        first = supervisor.start(env, BINARY, registry, probe=False)
        second = supervisor.restart(env, BINARY, registry, probe=False)
        assert second.pid != first.pid
        assert not adapters.processes.is_running(first.pid)
        assert read_pid(env.paths.pid_file) == second.pid

    def test_restart_when_stopped(self, supervisor, env, registry):
        result = supervisor.restart(env, BINARY, registry, probe=False)
        assert read_pid(env.paths.pid_file) == result.pid


# ── Status / logs ────────────────────────────────────────────────────


class TestStatus:
    def test_absent(self, supervisor, env, registry):
        status = supervisor.status(env, registry)
        assert status.state == "absent"
        assert status.health is None

    def test_running_with_health(self, supervisor, env, registry, adapters):
        adapters.http.statuses[STATUS_URL] = 401
        started = supervisor.start(env, BINARY, registry, probe=False)
        status = supervisor.status(env, registry)
        assert status.state == "running"
        assert status.pid == started.pid
        assert status.health.status == HEALTHY
        assert status.to_dict()["running"] is True

    def test_crashed_daemon_reads_stale(self, supervisor, env, registry, adapters):
        started = supervisor.start(env, BINARY, registry, probe=False)
        adapters.processes.kill(started.pid)
        status = supervisor.status(env, registry)
        assert status.state == "stale"
        assert not env.paths.pid_file.exists()
        assert supervisor.status(env, registry).state == "absent"

    def test_tail_logs(self, supervisor, env):
        log = env.paths.log_file
        log.parent.mkdir(parents=True, exist_ok=True)
        log.write_text("".join(f"line {i}\n" for i in range(100)))
        assert supervisor.tail_logs(env, 3) == ["line 97", "line 98", "line 99"]

    def test_tail_logs_missing(self, supervisor, env):
        assert supervisor.tail_logs(env) == []
