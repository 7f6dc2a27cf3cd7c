"""
L4 Execution — Per-version binary cache.

Layout: ``<cache root>/<version>/syftbox``.  A version is installed when
its executable file exists; a directory left behind by a failed download
does not count.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from sbenv.core.services.binary.assets import executable_name, host_platform, normalize_version

logger = logging.getLogger(__name__)


class BinaryCache:
    """Versioned daemon executables under one root directory."""

    def __init__(self, root: Path, *, os_name: str | None = None):
        self.root = root
        self.os_name = os_name or host_platform()[0]

    def version_dir(self, version: str) -> Path:
        return self.root / normalize_version(version)

    def executable(self, version: str) -> Path:
        return self.version_dir(version) / executable_name(self.os_name)

    def has(self, version: str) -> bool:
        return self.executable(version).is_file()

    def installed_versions(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            d.name for d in self.root.iterdir()
            if d.is_dir() and not d.name.startswith(".") and self.has(d.name)
        )

    def remove(self, version: str) -> bool:
        """Delete a cached version. Returns False if nothing was there."""
        vdir = self.version_dir(version)
        if not vdir.is_dir():
            return False
        shutil.rmtree(vdir)
        logger.info("Removed cached binary %s", vdir)
        return True
