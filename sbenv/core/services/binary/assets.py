"""
L1 Domain — Version specs, platform tokens and release asset matching (pure).

No I/O, no subprocess.
"""

from __future__ import annotations

import platform
import re
from typing import Any

from sbenv.core.data import constants as C

_SEMVER_RE = re.compile(
    r"^v?(?P<core>\d+\.\d+\.\d+)"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
)


def is_version_spec(spec: str) -> bool:
    """True if ``spec`` parses as a semantic version (``0.5.0``, ``v1.2.3-rc.1``)."""
    return bool(_SEMVER_RE.match(spec.strip()))


def normalize_version(spec: str) -> str:
    """``v0.5.0`` → ``0.5.0``."""
    spec = spec.strip()
    return spec[1:] if spec.startswith("v") else spec


def host_platform() -> tuple[str, str]:
    """(os, arch) of this host in canonical release spelling, e.g. ``("linux", "amd64")``."""
    os_name = platform.system().lower()
    machine = platform.machine()
    arch = C._IARCH_MAP.get(machine, machine.lower())
    return os_name, arch


def platform_tokens(os_name: str, arch: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """All spellings of ``os_name`` and ``arch`` that may appear in an asset name."""
    os_aliases = C.OS_ALIASES.get(os_name, (os_name,))
    arch_aliases = C.ARCH_ALIASES.get(arch, (arch,))
    return os_aliases, arch_aliases


def executable_name(os_name: str) -> str:
    return f"{C.DAEMON_NAME}.exe" if os_name == "windows" else C.DAEMON_NAME


def _has_token(name: str, token: str) -> bool:
    # Token must not be glued to other letters/digits: "win" is not in "darwin".
    return re.search(rf"(?<![a-z0-9]){re.escape(token)}(?![a-z0-9])", name) is not None


def score_asset(
    name: str,
    os_aliases: tuple[str, ...],
    arch_aliases: tuple[str, ...],
) -> int:
    """Score a release asset for this platform.

    Returns:
        0 if the asset is not for this platform (or is a checksum, package,
        signature...), otherwise ``ASSET_SCORE_TAR`` > ``ASSET_SCORE_ZIP`` >
        ``ASSET_SCORE_RAW``.
    """
    lower = name.lower()
    if lower.endswith(C.NON_BINARY_SUFFIXES):
        return 0
    if not any(_has_token(lower, t) for t in os_aliases):
        return 0
    if not any(_has_token(lower, t) for t in arch_aliases):
        return 0
    if lower.endswith(C.TAR_SUFFIXES):
        return C.ASSET_SCORE_TAR
    if lower.endswith(C.ZIP_SUFFIXES):
        return C.ASSET_SCORE_ZIP
    return C.ASSET_SCORE_RAW


def pick_asset(
    assets: list[dict[str, Any]],
    os_aliases: tuple[str, ...],
    arch_aliases: tuple[str, ...],
) -> dict[str, Any] | None:
    """Best-scoring asset from a GitHub release ``assets`` list.

    Stops at the first asset with a perfect (tarball) score.
    """
    best: dict[str, Any] | None = None
    best_score = 0
    for asset in assets:
        name = asset.get("name", "")
        if not name or not asset.get("browser_download_url"):
            continue
        score = score_asset(name, os_aliases, arch_aliases)
        if score > best_score:
            best, best_score = asset, score
            if score == C.ASSET_SCORE_TAR:
                break
    return best


def conventional_asset_names(version: str, os_name: str, arch: str) -> list[str]:
    """Asset file names to try when the release metadata is unavailable.

    Permutations of ``syftbox[_version]_os_arch`` with ``_`` and ``-``
    separators, each as ``.tar.gz``, ``.zip`` and a bare binary.
    Deterministic order, no duplicates.
    """
    os_aliases, arch_aliases = platform_tokens(os_name, arch)
    os_names = os_aliases[:2]
    arch_names = arch_aliases[:2]
    raw_suffix = ".exe" if os_name == "windows" else ""

    names: list[str] = []
    for sep in ("_", "-"):
        for with_version in (True, False):
            for os_part in os_names:
                for arch_part in arch_names:
                    parts = [C.DAEMON_NAME]
                    if with_version:
                        parts.append(version)
                    parts += [os_part, arch_part]
                    stem = sep.join(parts)
                    for suffix in (".tar.gz", ".zip", raw_suffix):
                        candidate = stem + suffix
                        if candidate not in names:
                            names.append(candidate)
    return names


def release_api_url(repo: str, version: str) -> str:
    return f"https://api.github.com/repos/{repo}/releases/tags/v{version}"


def release_download_url(repo: str, version: str, filename: str) -> str:
    return f"https://github.com/{repo}/releases/download/v{version}/{filename}"
