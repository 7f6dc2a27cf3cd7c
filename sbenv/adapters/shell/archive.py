"""
Archive extractor — tar and zip release archives.

The archive type is decided by file extension only.  Tar members are
extracted with the ``data`` filter, which rejects absolute paths, ``..``
traversal and device files.
"""

from __future__ import annotations

import logging
import tarfile
import zipfile
from pathlib import Path

from sbenv.adapters.base import ArchiveError, ArchiveExtractor
from sbenv.core.data import constants as C

logger = logging.getLogger(__name__)


class TarZipExtractor(ArchiveExtractor):
    """Extract ``.tar.gz`` / ``.tgz`` / ``.tar`` / ``.zip`` archives."""

    @property
    def name(self) -> str:
        return "archive"

    def is_archive(self, filename: str) -> bool:
        lower = filename.lower()
        return lower.endswith(C.TAR_SUFFIXES) or lower.endswith(C.ZIP_SUFFIXES)

    def extract(self, archive: Path, dest: Path) -> None:
        dest.mkdir(parents=True, exist_ok=True)
        lower = archive.name.lower()
        try:
            if lower.endswith(C.TAR_SUFFIXES):
                with tarfile.open(archive, "r:*") as tar:
                    tar.extractall(dest, filter="data")
            elif lower.endswith(C.ZIP_SUFFIXES):
                with zipfile.ZipFile(archive) as zf:
                    zf.extractall(dest)
            else:
                raise ArchiveError(f"Unsupported archive type: {archive.name}")
        except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
            raise ArchiveError(f"Cannot extract {archive.name}: {e}") from e
        logger.debug("Extracted %s into %s", archive.name, dest)
