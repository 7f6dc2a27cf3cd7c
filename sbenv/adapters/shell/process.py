"""
Process adapters — process table, signals and detached spawning.

The process table is read from ``/proc`` where it exists (Linux) and from
``ps`` otherwise.  A zombie counts as not running: a daemon we spawned from
this very process lingers as a zombie after it exits until it is reaped,
and ``kill(pid, 0)`` alone would report it alive.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path

from sbenv.adapters.base import ProcessInfo, ProcessInspector, ProcessSpawner

logger = logging.getLogger(__name__)

_PROC = Path("/proc")


def _proc_state(pid: int) -> str | None:
    """Single-letter state from /proc/<pid>/stat, or None if unreadable."""
    try:
        stat = (_PROC / str(pid) / "stat").read_text()
    except OSError:
        return None
    # "pid (comm) S ...": comm may itself contain spaces and parens.
    _, _, rest = stat.rpartition(")")
    fields = rest.split()
    return fields[0] if fields else None


def _ps_state(pid: int) -> str | None:
    if not shutil.which("ps"):
        return None
    try:
        result = subprocess.run(
            ["ps", "-o", "stat=", "-p", str(pid)],
            capture_output=True, text=True, timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    state = result.stdout.strip()
    return state[:1] if state else None


class SystemProcessInspector(ProcessInspector):
    """Process table access for the local host."""

    @property
    def name(self) -> str:
        return "process"

    def is_available(self) -> bool:
        return _PROC.is_dir() or shutil.which("ps") is not None

    def is_running(self, pid: int) -> bool:
        if pid <= 0:
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            pass  # exists, owned by someone else
        except OSError:
            return False

        state = _proc_state(pid) if _PROC.is_dir() else _ps_state(pid)
        return state != "Z"

    def list_processes(self) -> list[ProcessInfo]:
        if _PROC.is_dir():
            return self._list_from_proc()
        return self._list_from_ps()

    def _list_from_proc(self) -> list[ProcessInfo]:
        processes: list[ProcessInfo] = []
        for entry in _PROC.iterdir():
            if not entry.name.isdigit():
                continue
            try:
                raw = (entry / "cmdline").read_bytes()
            except OSError:
                continue  # exited while we were scanning, or not ours to read
            cmdline = raw.replace(b"\x00", b" ").decode("utf-8", "replace").strip()
            if cmdline:
                processes.append(ProcessInfo(pid=int(entry.name), cmdline=cmdline))
        return processes

    def _list_from_ps(self) -> list[ProcessInfo]:
        if not shutil.which("ps"):
            logger.warning("No /proc and no ps — cannot list processes")
            return []
        try:
            result = subprocess.run(
                ["ps", "-axo", "pid=,command="],
                capture_output=True, text=True, timeout=10,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("ps failed: %s", e)
            return []

        processes: list[ProcessInfo] = []
        for line in result.stdout.splitlines():
            pid_str, _, cmdline = line.strip().partition(" ")
            if pid_str.isdigit():
                processes.append(ProcessInfo(pid=int(pid_str), cmdline=cmdline.strip()))
        return processes

    def signal(self, pid: int, sig: int) -> bool:
        try:
            os.kill(pid, sig)
            return True
        except ProcessLookupError:
            return False
        except PermissionError:
            logger.warning("Not permitted to signal PID %d", pid)
            return False


class DetachedSpawner(ProcessSpawner):
    """Start children in their own session so they outlive the CLI."""

    def __init__(self) -> None:
        self._children: list[subprocess.Popen] = []

    @property
    def name(self) -> str:
        return "spawner"

    def spawn(
        self,
        argv: list[str],
        *,
        log_path: Path,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> int:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Spawning: %s (log=%s)", " ".join(argv), log_path)

        kwargs: dict = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = (
                subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
            )
        else:
            kwargs["start_new_session"] = True

        with open(log_path, "ab") as log:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                cwd=str(cwd) if cwd else None,
                env=env,
                close_fds=True,
                **kwargs,
            )
        # Held only so the Popen object isn't collected while the child runs.
        self._children.append(proc)
        logger.info("Spawned PID %d", proc.pid)
        return proc.pid
