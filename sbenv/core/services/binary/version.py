"""
L3 Detection — Daemon binary version probing.

Read-only probe: runs ``<binary> --version`` and parses a line like::

    syftbox version 0.8.5 (a1b2c3d; go1.24.2; linux/amd64; 2025-06-01T12:00:00Z)

The build block in parentheses is optional.  What the binary says about
itself beats whatever its cache directory is called.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from sbenv.adapters.base import CommandRunner
from sbenv.core.models.environment import BinaryInfo

logger = logging.getLogger(__name__)

_VERSION_LINE_RE = re.compile(
    r"^(?P<name>\S+)\s+version\s+v?(?P<version>\d+\.\d+\.\d+[0-9A-Za-z.+-]*)"
    r"(?:\s+\((?P<build>[^)]*)\))?",
    re.MULTILINE,
)


def parse_version_output(text: str) -> BinaryInfo | None:
    """Parse ``--version`` output into a BinaryInfo (path left unset).

    Returns:
        BinaryInfo, or None if no version line is present.
    """
    match = _VERSION_LINE_RE.search(text or "")
    if not match:
        return None

    info = BinaryInfo(version=match.group("version"))
    build = match.group("build")
    if build:
        fields = [f.strip() for f in build.split(";")]
        fields += [""] * (4 - len(fields))
        commit, toolchain, os_arch, built_at = fields[:4]
        info.hash = commit or None
        info.toolchain = toolchain or None
        if "/" in os_arch:
            info.os, info.arch = (p.strip() or None for p in os_arch.split("/", 1))
        info.built_at = built_at or None
    return info


def probe_binary(path: Path | str, runner: CommandRunner, *, timeout: int = 10) -> BinaryInfo | None:
    """Ask a binary for its version. Never raises.

    Returns:
        BinaryInfo with ``path`` set, or None if the binary could not be run
        or printed nothing recognisable.
    """
    result = runner.run([str(path), "--version"], timeout=timeout)
    if not result.ok:
        logger.debug("Version probe of %s failed: %s", path, result.error)
        return None

    info = parse_version_output(result.output)
    if info is None:
        logger.debug("Unrecognised version output from %s: %r", path, result.output[:200])
        return None
    info.path = str(path)
    return info
