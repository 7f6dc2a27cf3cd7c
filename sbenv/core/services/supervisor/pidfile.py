"""
PID file handling.

A PID file pointing at a dead process is stale: checking it removes it.
Reading never raises; a missing or garbled file reads as "no PID".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from sbenv.adapters.base import ProcessInspector

logger = logging.getLogger(__name__)


@dataclass
class PidState:
    """What the PID file says, checked against the process table."""

    pid: int | None = None
    running: bool = False
    stale: bool = False  # file existed but the process was gone (file removed)


def read_pid(path: Path) -> int | None:
    """Read PID from file, return None if missing or invalid."""
    if not path.exists():
        return None
    try:
        content = path.read_text().strip()
        return int(content) if content.isdigit() else None
    except (OSError, ValueError):
        return None


def write_pid(path: Path, pid: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{pid}\n")


def remove_pid(path: Path) -> None:
    path.unlink(missing_ok=True)


def check_pid(path: Path, inspector: ProcessInspector) -> PidState:
    """Check the PID file and clean it up if it is stale."""
    if not path.exists():
        return PidState()

    pid = read_pid(path)
    if pid is not None and inspector.is_running(pid):
        return PidState(pid=pid, running=True)

    if pid is None:
        logger.warning("Unreadable PID file %s — removing", path)
    else:
        logger.warning("Stale PID file %s (PID %d not running) — removing", path, pid)
    remove_pid(path)
    return PidState(pid=pid, stale=True)
