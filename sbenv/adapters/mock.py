"""
Mock adapters — in-memory test doubles for every host interaction.

Used by the test suite to drive the supervisor and the binary resolver
without touching real processes or the network.  Each fake records what
it was asked to do so tests can assert on it.
"""

from __future__ import annotations

import signal as _signal
from pathlib import Path
from typing import Any

from sbenv.adapters.base import (
    ArchiveError,
    ArchiveExtractor,
    CommandResult,
    CommandRunner,
    HttpClient,
    HttpError,
    HttpUnreachableError,
    ProcessInfo,
    ProcessInspector,
    ProcessSpawner,
)

_SIGKILL = getattr(_signal, "SIGKILL", _signal.SIGTERM)


class FakeProcessInspector(ProcessInspector):
    """A process table held in a dict.

    By default SIGTERM and SIGKILL both kill.  PIDs added to ``stubborn``
    ignore SIGTERM and only die on SIGKILL.
    """

    def __init__(self) -> None:
        self.processes: dict[int, str] = {}
        self.stubborn: set[int] = set()
        self.signals: list[tuple[int, int]] = []

    @property
    def name(self) -> str:
        return "process"

    def add(self, pid: int, cmdline: str = "", *, stubborn: bool = False) -> None:
        self.processes[pid] = cmdline
        if stubborn:
            self.stubborn.add(pid)

    def kill(self, pid: int) -> None:
        """Make ``pid`` disappear, as if it crashed."""
        self.processes.pop(pid, None)
        self.stubborn.discard(pid)

    def is_running(self, pid: int) -> bool:
        return pid in self.processes

    def list_processes(self) -> list[ProcessInfo]:
        return [ProcessInfo(pid=p, cmdline=c) for p, c in sorted(self.processes.items())]

    def signal(self, pid: int, sig: int) -> bool:
        self.signals.append((pid, sig))
        if pid not in self.processes:
            return False
        if sig == _SIGKILL or pid not in self.stubborn:
            self.kill(pid)
        return True


class FakeSpawner(ProcessSpawner):
    """Spawns entries in a ``FakeProcessInspector`` instead of real processes."""

    def __init__(
        self,
        inspector: FakeProcessInspector,
        *,
        first_pid: int = 40000,
    ) -> None:
        self.inspector = inspector
        self.next_pid = first_pid
        self.calls: list[list[str]] = []
        self.fail_with: BaseException | None = None
        self.dies_immediately = False
        self.on_spawn: Any = None  # optional callable(argv) run before returning

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
        self.calls.append(list(argv))
        if self.fail_with is not None:
            raise self.fail_with
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(f"[fake] started {' '.join(argv)}\n")
        pid = self.next_pid
        self.next_pid += 1
        if not self.dies_immediately:
            self.inspector.add(pid, " ".join(argv))
        if self.on_spawn is not None:
            self.on_spawn(argv)
        return pid


class FakeCommandRunner(CommandRunner):
    """Returns canned output keyed by the executable path."""

    def __init__(self) -> None:
        self.outputs: dict[str, CommandResult] = {}
        self.calls: list[list[str]] = []

    @property
    def name(self) -> str:
        return "command"

    def set_version_output(self, executable: str | Path, text: str) -> None:
        self.outputs[str(executable)] = CommandResult(ok=True, returncode=0, stdout=text)

    def run(self, argv: list[str], *, timeout: int = 10) -> CommandResult:
        self.calls.append(list(argv))
        return self.outputs.get(
            argv[0], CommandResult(ok=False, error=f"{argv[0]}: not found"),
        )


class FakeHttpClient(HttpClient):
    """Canned HTTP responses.

    - ``statuses[url]`` → status code, or an exception instance to raise
    - ``json_docs[url]`` → decoded JSON payload
    - ``files[url]`` → bytes served by ``download``
    Anything not configured behaves like an unreachable host.
    """

    def __init__(self) -> None:
        self.statuses: dict[str, int | BaseException] = {}
        self.json_docs: dict[str, Any] = {}
        self.files: dict[str, bytes] = {}
        self.requests: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "http"

    @property
    def request_count(self) -> int:
        return len(self.requests)

    def get_status(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 2.0,
    ) -> int:
        self.requests.append(("status", url))
        result = self.statuses.get(url)
        if result is None:
            raise HttpUnreachableError(f"{url}: connection refused")
        if isinstance(result, BaseException):
            raise result
        return result

    def get_json(self, url: str, *, timeout: float = 15.0) -> Any:
        self.requests.append(("json", url))
        if url not in self.json_docs:
            raise HttpError(f"GET {url} returned HTTP 404")
        return self.json_docs[url]

    def download(self, url: str, dest: Path, *, timeout: float = 60.0) -> int:
        self.requests.append(("download", url))
        if url not in self.files:
            raise HttpError(f"Download {url} returned HTTP 404")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.files[url])
        return len(self.files[url])


class FakeArchiveExtractor(ArchiveExtractor):
    """Extracts archives from a table of ``archive name → {relpath: bytes}``."""

    def __init__(self) -> None:
        self.contents: dict[str, dict[str, bytes]] = {}
        self.extracted: list[str] = []

    @property
    def name(self) -> str:
        return "archive"

    def is_archive(self, filename: str) -> bool:
        return filename.lower().endswith((".tar.gz", ".tgz", ".tar", ".zip"))

    def extract(self, archive: Path, dest: Path) -> None:
        self.extracted.append(archive.name)
        members = self.contents.get(archive.name)
        if members is None:
            raise ArchiveError(f"Cannot extract {archive.name}: unknown archive")
        for rel, data in members.items():
            target = dest / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
