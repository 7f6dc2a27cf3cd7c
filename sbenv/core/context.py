"""
Invocation context — what one sbenv command runs against.

Entry points build a single ``SbenvContext`` and pass it to every use case:

    - CLI:    main.py  → SbenvContext.from_env()
    - Tests:  conftest → SbenvContext(paths=tmp paths, adapters=AdapterSet.fake())

Nothing here is cached at module level; two contexts never share state.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from sbenv.adapters.registry import AdapterSet
from sbenv.core.config.paths import SbenvPaths, release_repo
from sbenv.core.models.environment import GlobalDefaults, Registry
from sbenv.core.persistence.documents import (
    load_defaults,
    load_registry,
    save_defaults,
    save_registry,
)
from sbenv.core.services.binary.cache import BinaryCache
from sbenv.core.services.binary.resolver import BinaryResolver
from sbenv.core.services.supervisor.daemon import Supervisor, SupervisorTimings


@dataclass
class SbenvContext:
    """Host paths, adapters and timings for one invocation."""

    paths: SbenvPaths
    adapters: AdapterSet
    timings: SupervisorTimings = field(default_factory=SupervisorTimings)
    repo: str = ""
    os_name: str | None = None
    arch: str | None = None
    sleep: Callable[[float], None] = time.sleep

    @classmethod
    def from_env(cls) -> SbenvContext:
        return cls(
            paths=SbenvPaths.from_env(),
            adapters=AdapterSet.system(),
            repo=release_repo(),
        )

    # ── Documents ───────────────────────────────────────────────

    def load_registry(self) -> Registry:
        return load_registry(self.paths.registry_file)

    def save_registry(self, registry: Registry) -> None:
        save_registry(registry, self.paths.registry_file)

    def load_defaults(self) -> GlobalDefaults:
        return load_defaults(self.paths.defaults_file)

    def save_defaults(self, defaults: GlobalDefaults) -> None:
        save_defaults(defaults, self.paths.defaults_file)

    # ── Services ────────────────────────────────────────────────

    def cache(self) -> BinaryCache:
        return BinaryCache(self.paths.cache_dir, os_name=self.os_name)

    def resolver(self) -> BinaryResolver:
        kwargs = {"repo": self.repo} if self.repo else {}
        return BinaryResolver(
            self.cache(), self.adapters, os_name=self.os_name, arch=self.arch, **kwargs,
        )

    def supervisor(self) -> Supervisor:
        return Supervisor(self.paths, self.adapters, self.timings, sleep=self.sleep)
