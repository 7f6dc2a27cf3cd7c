"""
Adapter base — the contracts between sbenv's control logic and the host.

Everything the supervisor and resolver need from the outside world (the
process table, signals, spawning, HTTP, archive extraction, running a
binary) goes through one of these interfaces.  Real implementations live
in ``sbenv.adapters.shell`` and ``sbenv.adapters.network``; in-memory fakes
for tests live in ``sbenv.adapters.mock``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class ProcessInfo:
    """One row of the process table."""

    pid: int
    cmdline: str


@dataclass
class CommandResult:
    """Outcome of running a short-lived command."""

    ok: bool
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str = ""

    @property
    def output(self) -> str:
        # Some tools write their version banner to stderr.
        return (self.stdout or "") + (self.stderr or "")


class HttpError(Exception):
    """An HTTP request failed (bad status, bad payload, or no connection)."""


class HttpUnreachableError(HttpError):
    """The server could not be reached at all (refused, DNS, timeout)."""


class ArchiveError(Exception):
    """An archive could not be extracted."""


class Adapter(ABC):
    """Common surface of every adapter."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'process', 'http')."""

    def is_available(self) -> bool:
        """Whether the underlying OS facility exists. Must never raise."""
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class ProcessInspector(Adapter):
    """Read the process table and deliver signals."""

    @abstractmethod
    def is_running(self, pid: int) -> bool:
        """True if ``pid`` exists and is not a zombie."""

    @abstractmethod
    def list_processes(self) -> list[ProcessInfo]:
        """All visible processes with their full command lines."""

    @abstractmethod
    def signal(self, pid: int, sig: int) -> bool:
        """Send ``sig`` to ``pid``. Returns False if the process is gone."""


class ProcessSpawner(Adapter):
    """Start detached child processes."""

    @abstractmethod
    def spawn(
        self,
        argv: list[str],
        *,
        log_path: Path,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> int:
        """Start ``argv`` detached from this process and return its PID.

        stdin is closed; stdout and stderr are appended to ``log_path`` so
        output survives the parent exiting.

        Raises:
            OSError: If the executable cannot be started at all.
        """


class CommandRunner(Adapter):
    """Run short-lived commands and capture their output."""

    @abstractmethod
    def run(self, argv: list[str], *, timeout: int = 10) -> CommandResult:
        """Run ``argv`` to completion. Never raises."""


class HttpClient(Adapter):
    """The handful of HTTP operations sbenv needs."""

    @abstractmethod
    def get_status(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 2.0,
    ) -> int:
        """GET ``url`` and return the status code (any code, 4xx/5xx included).

        Raises:
            HttpUnreachableError: If no response was received.
        """

    @abstractmethod
    def get_json(self, url: str, *, timeout: float = 15.0) -> Any:
        """GET ``url`` and decode the JSON body.

        Raises:
            HttpError: On connection failure, non-2xx status, or bad JSON.
        """

    @abstractmethod
    def download(self, url: str, dest: Path, *, timeout: float = 60.0) -> int:
        """Stream ``url`` into ``dest``. Returns the byte count.

        Raises:
            HttpError: On any failure; ``dest`` is removed.
        """


class ArchiveExtractor(Adapter):
    """Unpack release archives."""

    @abstractmethod
    def is_archive(self, filename: str) -> bool:
        """Whether ``filename`` has an archive extension this extractor handles."""

    @abstractmethod
    def extract(self, archive: Path, dest: Path) -> None:
        """Extract ``archive`` into the directory ``dest``.

        Raises:
            ArchiveError: If the archive is unreadable or unsupported.
        """
