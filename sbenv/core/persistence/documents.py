"""
Document persistence — atomic read/write for sbenv's JSON documents.

The registry and the global defaults are whole-document read/write: load
the file, change it in memory, save it back.  There is no locking; the last
writer wins.  Writes are atomic (write to temp file, then rename) so a crash
mid-write never leaves a truncated document behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sbenv.core.models.environment import (
    EnvironmentRecord,
    GlobalDefaults,
    Marker,
    Registry,
)

logger = logging.getLogger(__name__)


def write_json_atomic(data: Any, path: Path, *, prefix: str = ".sbenv_") -> None:
    """Serialize ``data`` to ``path`` via temp-file-then-rename.

    Args:
        data: JSON-serializable value.
        path: Target file. Parent directories are created.
        prefix: Temp file prefix (temp files live beside the target).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
        logger.debug("Saved %s", path)
    except Exception:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save %s", path)
        raise


def _read_json(path: Path) -> Any | None:
    """Read JSON from ``path``; None when missing or corrupt (logged)."""
    if not path.is_file():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.warning("Corrupt JSON in %s: %s — starting fresh", path, e)
    except OSError as e:
        logger.warning("Cannot read %s: %s — starting fresh", path, e)
    return None


# ── Registry ────────────────────────────────────────────────────


def load_registry(path: Path) -> Registry:
    """Load the registry. Missing or corrupt files yield an empty registry."""
    data = _read_json(path)
    if data is None:
        logger.info("No registry at %s — starting fresh", path)
        return Registry()
    if not isinstance(data, dict):
        logger.warning("Registry %s is not a JSON object — starting fresh", path)
        return Registry()

    environments: dict[str, EnvironmentRecord] = {}
    for key, raw in data.items():
        try:
            environments[key] = EnvironmentRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning("Skipping invalid registry entry %r: %s", key, e)
    logger.debug("Loaded %d environment(s) from %s", len(environments), path)
    return Registry(environments=environments)


def save_registry(registry: Registry, path: Path) -> None:
    """Save the registry as ``{identity: record}``."""
    data = {
        key: record.model_dump(mode="json", exclude_none=True)
        for key, record in sorted(registry.environments.items())
    }
    write_json_atomic(data, path, prefix=".envs_")


# ── Global defaults ─────────────────────────────────────────────


def load_defaults(path: Path) -> GlobalDefaults:
    data = _read_json(path)
    if not isinstance(data, dict):
        return GlobalDefaults()
    try:
        return GlobalDefaults.model_validate(data)
    except ValidationError as e:
        logger.warning("Invalid defaults in %s: %s — ignoring", path, e)
        return GlobalDefaults()


def save_defaults(defaults: GlobalDefaults, path: Path) -> None:
    write_json_atomic(defaults.model_dump(mode="json", exclude_none=True), path)


# ── Marker ──────────────────────────────────────────────────────


def read_marker(path: Path) -> Marker | None:
    data = _read_json(path)
    if not isinstance(data, dict):
        return None
    try:
        return Marker.model_validate(data)
    except ValidationError:
        return None


def write_marker(marker: Marker, path: Path) -> bool:
    """Write the marker file unless one already exists.

    Returns:
        True if the file was written, False if it was already there.
    """
    if path.exists():
        logger.debug("Marker already present at %s — leaving it alone", path)
        return False
    write_json_atomic(marker.model_dump(mode="json", exclude_none=True), path)
    return True
