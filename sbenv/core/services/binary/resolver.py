"""
L2 Resolver — Turn a binary spec into a runnable executable.

A spec is either a semantic version (``0.8.5``, ``v0.8.5``) or anything
else, which is treated as a path or a command name.  Path resolution is
best effort: a name that cannot be found is passed through as-is and fails
later, when the daemon is actually started.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sbenv.adapters.registry import AdapterSet
from sbenv.core.data import constants as C
from sbenv.core.models.environment import BinaryInfo, EnvironmentRecord, GlobalDefaults
from sbenv.core.services.binary.assets import (
    host_platform,
    is_version_spec,
    normalize_version,
)
from sbenv.core.services.binary.cache import BinaryCache
from sbenv.core.services.binary.install import install_version
from sbenv.core.services.binary.version import probe_binary

logger = logging.getLogger(__name__)


@dataclass
class ResolvedBinary:
    """A concrete executable plus where it came from."""

    path: str
    version: str | None = None
    source: str = ""  # cache, download, path, search-path, bare-name, ...
    build: BinaryInfo | None = field(default=None, repr=False)

    def to_binary_info(self) -> BinaryInfo:
        """Record-ready form (path + version + build metadata)."""
        info = self.build.model_copy() if self.build else BinaryInfo()
        info.path = self.path
        info.version = self.version or info.version
        return info

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "path": self.path,
            "version": self.version,
            "source": self.source,
        }
        if self.build:
            result["build"] = self.build.model_dump(mode="json", exclude_none=True)
        return result


class BinaryResolver:
    """Resolve binary specs against the cache, the filesystem and PATH."""

    def __init__(
        self,
        cache: BinaryCache,
        adapters: AdapterSet,
        *,
        repo: str = C.DEFAULT_RELEASE_REPO,
        os_name: str | None = None,
        arch: str | None = None,
    ):
        host_os, host_arch = host_platform()
        self.cache = cache
        self.adapters = adapters
        self.repo = repo
        self.os_name = os_name or host_os
        self.arch = arch or host_arch

    # ── Single spec ─────────────────────────────────────────────

    def resolve(self, spec: str) -> ResolvedBinary:
        """Resolve a user-supplied spec (version or path/name).

        Raises:
            BinaryResolutionError: Version specs only, when the version is
                neither cached nor downloadable.
        """
        spec = spec.strip()
        if is_version_spec(spec):
            return self.resolve_version(spec)
        return self.resolve_path(spec)

    def resolve_version(self, spec: str) -> ResolvedBinary:
        version = normalize_version(spec)
        if self.cache.has(version):
            exe = self.cache.executable(version)
            source = "cache"
            logger.debug("Cache hit for %s: %s", version, exe)
        else:
            exe = install_version(
                version,
                self.cache,
                self.adapters.http,
                self.adapters.extractor,
                os_name=self.os_name,
                arch=self.arch,
                repo=self.repo,
            )
            source = "download"

        build = probe_binary(exe, self.adapters.runner)
        detected = build.version if build and build.version else version
        if detected != version:
            logger.warning(
                "Cached %s for %s reports version %s", exe, version, detected,
            )
        return ResolvedBinary(path=str(exe), version=detected, source=source, build=build)

    def resolve_path(self, spec: str) -> ResolvedBinary:
        candidate = Path(spec).expanduser()
        if candidate.is_absolute():
            path, source = str(candidate), "path"
        elif candidate.exists():
            path, source = str(candidate.absolute()), "path"
        else:
            found = shutil.which(spec)
            if found:
                path, source = found, "search-path"
            else:
                logger.warning("%s not found; it will fail when started", spec)
                return ResolvedBinary(path=spec, source="bare-name")

        build = probe_binary(path, self.adapters.runner) if Path(path).is_file() else None
        return ResolvedBinary(
            path=path,
            version=build.version if build else None,
            source=source,
            build=build,
        )

    # ── Environment precedence ──────────────────────────────────

    def resolve_for_environment(
        self,
        record: EnvironmentRecord | None,
        defaults: GlobalDefaults,
    ) -> ResolvedBinary:
        """Pick the binary for an environment.

        Precedence: the environment's recorded path, its pinned version
        (re-checked against the cache, possibly downloading again), the
        global default spec, ``syftbox`` on PATH, and finally the bare name.
        """
        pinned = record.binary if record else None

        if pinned and pinned.path:
            resolved = self.resolve_path(pinned.path)
            resolved.source = "environment-path"
            if resolved.version is None:
                resolved.version = pinned.version
            return resolved

        if pinned and pinned.version:
            resolved = self.resolve_version(pinned.version)
            resolved.source = "environment-version"
            return resolved

        if defaults.binary:
            resolved = self.resolve(defaults.binary)
            resolved.source = "global-default"
            return resolved

        found = shutil.which(C.DAEMON_NAME)
        if found:
            resolved = self.resolve_path(found)
            resolved.source = "search-path"
            return resolved

        return ResolvedBinary(path=C.DAEMON_NAME, source="bare-name")
