"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import json
import socket
import threading
from pathlib import Path

import pytest

from sbenv.adapters.registry import AdapterSet
from sbenv.core.config.paths import SbenvPaths
from sbenv.core.context import SbenvContext
from sbenv.core.services.supervisor.daemon import SupervisorTimings
from tests.daemon_fixtures import VERSION_BANNER


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Never let a test see (or write to) the real home directory."""
    for var in ("SBENV_LOG_LEVEL", "SBENV_LOG_FILE", "SBENV_LOG_FILE_LEVEL",
                "SBENV_RELEASE_REPO", "SBENV_ROOT", "SBENV_ACTIVE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("SBENV_USER_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("SBENV_HOME", str(tmp_path / "home" / ".sbenv"))


@pytest.fixture
def sbenv_paths(tmp_path: Path) -> SbenvPaths:
    """Host paths rooted in a temporary directory."""
    return SbenvPaths(home=tmp_path / "home" / ".sbenv", user_home=tmp_path / "home")


@pytest.fixture
def adapters() -> AdapterSet:
    """In-memory fakes for every adapter."""
    return AdapterSet.fake()


@pytest.fixture
def sleeps() -> list[float]:
    """Every delay the supervisor asked for, in order."""
    return []


@pytest.fixture
def ctx(sbenv_paths: SbenvPaths, adapters: AdapterSet, sleeps: list[float]) -> SbenvContext:
    """Invocation context on fakes, for linux/amd64, with no real waiting."""
    return SbenvContext(
        paths=sbenv_paths,
        adapters=adapters,
        timings=SupervisorTimings.instant(),
        repo="OpenMined/syftbox",
        os_name="linux",
        arch="amd64",
        sleep=sleeps.append,
    )


@pytest.fixture
def cached_binary(ctx: SbenvContext):
    """Factory: put a fake executable for ``version`` into the cache."""

    def _make(version: str = "0.8.5") -> Path:
        exe = ctx.cache().executable(version)
        exe.parent.mkdir(parents=True, exist_ok=True)
        exe.write_text("#!/bin/sh\n")
        exe.chmod(0o755)
        ctx.adapters.runner.set_version_output(exe, VERSION_BANNER.format(version=version))
        return exe

    return _make


@pytest.fixture
def global_config(sbenv_paths: SbenvPaths) -> Path:
    """A pre-existing global daemon config belonging to the user."""
    path = sbenv_paths.global_config
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"email": "owner@example.com", "refresh_token": "owner-rt"}, indent=4))
    return path


@pytest.fixture
def foreign_listener():
    """A local port held by something that speaks SSH, not HTTP."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(8)
    server.settimeout(0.2)
    done = threading.Event()

    def _serve() -> None:
        while not done.is_set():
            try:
                conn, _ = server.accept()
            except (socket.timeout, OSError):
                continue
            with conn:
                conn.settimeout(1)
                try:
                    conn.recv(4096)
                    conn.sendall(b"SSH-2.0-OpenSSH_9.0\r\n")
                except OSError:
                    pass

    thread = threading.Thread(target=_serve, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.getsockname()[1]}"
    done.set()
    thread.join(timeout=2)
    server.close()
