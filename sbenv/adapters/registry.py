"""
Adapter set — the bundle of host adapters handed to services.

Services never construct adapters themselves; they receive an
``AdapterSet``.  The CLI builds ``AdapterSet.system()``, tests build
``AdapterSet.fake()`` and poke at the individual fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sbenv.adapters.base import (
    Adapter,
    ArchiveExtractor,
    CommandRunner,
    HttpClient,
    ProcessInspector,
    ProcessSpawner,
)

logger = logging.getLogger(__name__)


@dataclass
class AdapterSet:
    """Every host collaborator sbenv talks to."""

    processes: ProcessInspector
    spawner: ProcessSpawner
    runner: CommandRunner
    http: HttpClient
    extractor: ArchiveExtractor

    @classmethod
    def system(cls) -> AdapterSet:
        """Real adapters for the local host."""
        from sbenv.adapters.network.http import UrllibHttpClient
        from sbenv.adapters.shell.archive import TarZipExtractor
        from sbenv.adapters.shell.command import SubprocessRunner
        from sbenv.adapters.shell.process import DetachedSpawner, SystemProcessInspector

        return cls(
            processes=SystemProcessInspector(),
            spawner=DetachedSpawner(),
            runner=SubprocessRunner(),
            http=UrllibHttpClient(),
            extractor=TarZipExtractor(),
        )

    @classmethod
    def fake(cls) -> AdapterSet:
        """In-memory fakes, wired together (the spawner feeds the inspector)."""
        from sbenv.adapters.mock import (
            FakeArchiveExtractor,
            FakeCommandRunner,
            FakeHttpClient,
            FakeProcessInspector,
            FakeSpawner,
        )

        inspector = FakeProcessInspector()
        return cls(
            processes=inspector,
            spawner=FakeSpawner(inspector),
            runner=FakeCommandRunner(),
            http=FakeHttpClient(),
            extractor=FakeArchiveExtractor(),
        )

    def all(self) -> list[Adapter]:
        return [self.processes, self.spawner, self.runner, self.http, self.extractor]

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every adapter."""
        status = {}
        for adapter in self.all():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[adapter.name] = {
                "name": adapter.name,
                "available": available,
                "type": adapter.__class__.__name__,
            }
        return status
