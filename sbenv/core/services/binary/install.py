"""
L4 Execution — Download and install a daemon version into the cache.

Two strategies, tried in order:

1. ``asset-api``: fetch the GitHub release for tag ``v<version>``, pick the
   asset whose name matches this OS/arch (tarball > zip > bare binary).
2. ``conventional``: guess asset names from the usual naming patterns and
   try each download URL until one works.

Every download lands in a scratch directory under the cache root, which is
removed whether or not the install succeeds.
"""

from __future__ import annotations

import logging
import shutil
import stat
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from sbenv.adapters.base import ArchiveError, ArchiveExtractor, HttpClient, HttpError
from sbenv.core.data import constants as C
from sbenv.core.services.binary.assets import (
    conventional_asset_names,
    executable_name,
    normalize_version,
    pick_asset,
    platform_tokens,
    release_api_url,
    release_download_url,
)
from sbenv.core.services.binary.cache import BinaryCache

logger = logging.getLogger(__name__)


@dataclass
class InstallAttempt:
    """One failed try at obtaining a binary."""

    strategy: str  # asset-api | conventional
    target: str    # URL that was tried
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"strategy": self.strategy, "target": self.target, "error": self.error}


class BinaryResolutionError(Exception):
    """Raised when no binary could be found or installed for a spec."""

    def __init__(self, message: str, attempts: list[InstallAttempt] | None = None):
        self.attempts = attempts or []
        detail = "".join(
            f"\n  - [{a.strategy}] {a.target}: {a.error}" for a in self.attempts
        )
        super().__init__(message + detail)


class _NotInArchive(Exception):
    pass


def _find_executable(tree: Path, exe_name: str) -> Path | None:
    """Shallowest file named ``exe_name`` under ``tree``."""
    matches = [p for p in tree.rglob(exe_name) if p.is_file()]
    if not matches:
        return None
    return min(matches, key=lambda p: (len(p.parts), str(p)))


def _make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH | stat.S_IRUSR)


def _candidates(
    version: str,
    http: HttpClient,
    *,
    os_name: str,
    arch: str,
    repo: str,
    attempts: list[InstallAttempt],
) -> Iterator[tuple[str, str, str]]:
    """Yield ``(strategy, url, filename)`` in the order they should be tried."""
    api_url = release_api_url(repo, version)
    try:
        release = http.get_json(api_url)
        assets = release.get("assets", []) if isinstance(release, dict) else []
        os_aliases, arch_aliases = platform_tokens(os_name, arch)
        asset = pick_asset(assets, os_aliases, arch_aliases)
        if asset is None:
            names = [a.get("name", "") for a in assets[:10]]
            attempts.append(InstallAttempt(
                "asset-api", api_url,
                f"no asset for {os_name}/{arch} among {names}",
            ))
        else:
            logger.info("Release asset for %s/%s: %s", os_name, arch, asset["name"])
            yield "asset-api", asset["browser_download_url"], asset["name"]
    except HttpError as e:
        attempts.append(InstallAttempt("asset-api", api_url, str(e)))

    for filename in conventional_asset_names(version, os_name, arch):
        yield "conventional", release_download_url(repo, version, filename), filename


def _fetch_into_cache(
    url: str,
    filename: str,
    workdir: Path,
    dest: Path,
    http: HttpClient,
    extractor: ArchiveExtractor,
) -> None:
    workdir.mkdir(parents=True)
    download = workdir / filename
    http.download(url, download)

    if extractor.is_archive(filename):
        extracted = workdir / "extracted"
        extractor.extract(download, extracted)
        found = _find_executable(extracted, dest.name)
        if found is None:
            raise _NotInArchive(f"{dest.name} not found inside {filename}")
    else:
        found = download

    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.unlink(missing_ok=True)
    shutil.move(str(found), str(dest))
    _make_executable(dest)


def install_version(
    version: str,
    cache: BinaryCache,
    http: HttpClient,
    extractor: ArchiveExtractor,
    *,
    os_name: str,
    arch: str,
    repo: str = C.DEFAULT_RELEASE_REPO,
) -> Path:
    """Download ``version`` for ``os_name``/``arch`` into ``cache``.

    Returns:
        Path of the installed executable.

    Raises:
        BinaryResolutionError: If every strategy failed. Lists each attempt.
    """
    version = normalize_version(version)
    dest = cache.version_dir(version) / executable_name(os_name)
    attempts: list[InstallAttempt] = []

    cache.root.mkdir(parents=True, exist_ok=True)
    scratch = Path(tempfile.mkdtemp(prefix=f".install-{version}-", dir=cache.root))
    logger.info("Installing %s %s for %s/%s", C.DAEMON_NAME, version, os_name, arch)
    try:
        candidates = _candidates(
            version, http, os_name=os_name, arch=arch, repo=repo, attempts=attempts,
        )
        for index, (strategy, url, filename) in enumerate(candidates):
            try:
                _fetch_into_cache(url, filename, scratch / str(index), dest, http, extractor)
            except (HttpError, ArchiveError, _NotInArchive, OSError) as e:
                logger.debug("[%s] %s failed: %s", strategy, url, e)
                attempts.append(InstallAttempt(strategy, url, str(e)))
                continue
            logger.info("Installed %s %s → %s (%s)", C.DAEMON_NAME, version, dest, strategy)
            return dest
    finally:
        shutil.rmtree(scratch, ignore_errors=True)

    raise BinaryResolutionError(
        f"Could not install {C.DAEMON_NAME} {version} for {os_name}/{arch} "
        f"({len(attempts)} attempt(s) failed)",
        attempts,
    )
