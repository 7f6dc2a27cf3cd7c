"""
Environment registry — identity keys, registration and lookup.

All functions take the ``Registry`` document and mutate it in place; the
caller owns load/save (see ``sbenv.core.persistence.documents``).

Identity is ``email@canonical-path`` so that two users (or two checkouts)
with the same directory name never collide.
"""

from __future__ import annotations

import logging
import random
from pathlib import Path

from sbenv.core.models.environment import (
    BinaryInfo,
    EnvironmentRecord,
    LocalConfig,
    Registry,
)
from sbenv.core.services.ports import allocate_port

logger = logging.getLogger(__name__)


def canonical_path(path: Path | str) -> str:
    """Resolve symlinks and relative segments; fall back to the literal path.

    A directory that does not exist yet cannot be canonicalized, but it
    still needs a reproducible key.
    """
    try:
        return str(Path(path).resolve(strict=True))
    except (OSError, RuntimeError):
        return str(path)


def identity_key(path: Path | str, email: str) -> str:
    """Registry key for an environment: ``email@canonical-path``."""
    return f"{email}@{canonical_path(path)}"


def _same_path(a: str, b: Path | str) -> bool:
    return a == str(b) or canonical_path(a) == canonical_path(b)


def find_record(
    registry: Registry, path: Path | str
) -> tuple[str | None, EnvironmentRecord | None]:
    """First record whose stored path matches ``path``."""
    for key, record in registry.environments.items():
        if _same_path(record.path, path):
            return key, record
    return None, None


def port_for_path(registry: Registry, path: Path | str) -> int:
    """Port recorded for ``path``, or 0 when unknown."""
    _, record = find_record(registry, path)
    return record.port if record else 0


def merge_binary(
    existing: BinaryInfo | None, incoming: BinaryInfo | None
) -> BinaryInfo | None:
    """Combine previously recorded binary info with a new value.

    - no incoming info → keep what we had
    - incoming with a path → it replaces the old info
    - incoming version only, old info has a path → keep the path
    """
    if incoming is None or incoming.is_empty:
        return existing
    if incoming.path or existing is None or not existing.path:
        return incoming
    logger.debug(
        "Keeping recorded binary path %s over version-only update %s",
        existing.path, incoming.version,
    )
    return existing


def register(
    registry: Registry,
    path: Path | str,
    config: LocalConfig,
    *,
    name: str | None = None,
    binary: BinaryInfo | None = None,
    port: int = 0,
    rng: random.Random | None = None,
) -> tuple[str, EnvironmentRecord]:
    """Create or update the record for ``path`` from its local config.

    Connection settings are refreshed from ``config``.  The port is kept
    when already assigned; otherwise ``port`` is used if given, else one is
    allocated.  Binary info is merged, never dropped because unrelated
    settings changed.

    Returns:
        (identity key, record)

    Raises:
        PortRangeExhaustedError: If a port is needed and none is free.
    """
    key = identity_key(path, config.email)
    existing = registry.environments.get(key)

    if existing is None:
        record = EnvironmentRecord(
            path=canonical_path(path),
            email=config.email,
            name=name or "",
            server_url=config.server_url,
            dev_mode=config.dev_mode,
            binary=binary if binary and not binary.is_empty else None,
        )
        record.port = port or allocate_port(registry, rng=rng)
        logger.info("Registered %s on port %d", key, record.port)
    else:
        record = existing
        record.server_url = config.server_url
        record.dev_mode = config.dev_mode
        if name:
            record.name = name
        record.binary = merge_binary(record.binary, binary)
        if not record.port:
            record.port = port or allocate_port(registry, rng=rng)
        record.touch()
        logger.info("Updated %s", key)

    registry.environments[key] = record
    return key, record


def unregister(registry: Registry, path: Path | str) -> list[str]:
    """Remove every record whose stored path matches ``path``.

    Returns:
        The identity keys that were removed.
    """
    removed = [
        key for key, record in registry.environments.items()
        if _same_path(record.path, path)
    ]
    for key in removed:
        del registry.environments[key]
        logger.info("Unregistered %s", key)
    return removed
