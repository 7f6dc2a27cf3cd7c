"""
Binary use cases — resolve, pin, host default, cache management.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sbenv.core.config.loader import ConfigError, env_root, find_env_config, load_env_config
from sbenv.core.context import SbenvContext
from sbenv.core.models.environment import BinaryInfo
from sbenv.core.services.binary.assets import is_version_spec, normalize_version
from sbenv.core.services.binary.install import BinaryResolutionError
from sbenv.core.services.binary.resolver import ResolvedBinary
from sbenv.core.services.registry import find_record, register

logger = logging.getLogger(__name__)


def pinned_info(spec: str, resolved: ResolvedBinary) -> BinaryInfo:
    """What to record when a user pins ``spec``.

    Pinning a version records the version (and build metadata) only, so the
    executable is looked up in the cache each time.  Pinning a path records
    the path, which then wins over any version.
    """
    info = resolved.to_binary_info()
    if is_version_spec(spec):
        info.path = None
    return info


@dataclass
class BinaryResult:
    """Outcome of a resolve / pin / default operation."""

    spec: str | None = None
    resolved: ResolvedBinary | None = None
    root: Path | None = None
    pinned: BinaryInfo | None = None
    default: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {
            "spec": self.spec,
            "root": str(self.root) if self.root else None,
            "resolved": self.resolved.to_dict() if self.resolved else None,
            "pinned": self.pinned.model_dump(mode="json", exclude_none=True) if self.pinned else None,
            "default": self.default,
        }


def resolve_environment_binary(
    ctx: SbenvContext,
    spec: str | None = None,
    config_path: Path | None = None,
    start_dir: Path | None = None,
) -> BinaryResult:
    """Resolve ``spec``, or the binary the current environment would run.

    Outside an environment, precedence starts at the host default.
    """
    result = BinaryResult(spec=spec)
    try:
        if spec:
            result.resolved = ctx.resolver().resolve(spec)
            return result

        record = None
        if config_path is None:
            config_path = find_env_config(start_dir, ctx.paths)
        if config_path is not None:
            result.root = env_root(config_path)
            _, record = find_record(ctx.load_registry(), result.root)
        result.resolved = ctx.resolver().resolve_for_environment(record, ctx.load_defaults())
    except BinaryResolutionError as e:
        result.error = str(e)
    return result


def pin_binary(
    ctx: SbenvContext,
    spec: str,
    config_path: Path | None = None,
    start_dir: Path | None = None,
) -> BinaryResult:
    """Resolve ``spec`` and record it on the current environment."""
    result = BinaryResult(spec=spec)
    try:
        config_path, config = load_env_config(config_path, ctx.paths, start_dir)
        resolved = ctx.resolver().resolve(spec)
    except (ConfigError, BinaryResolutionError) as e:
        result.error = str(e)
        return result

    root = env_root(config_path)
    registry = ctx.load_registry()
    _, record = register(registry, root, config)
    record.binary = pinned_info(spec, resolved)
    record.touch()
    ctx.save_registry(registry)

    result.root = root
    result.resolved = resolved
    result.pinned = record.binary
    logger.info("Pinned %s to %s", root, record.binary.label())
    return result


def set_default_binary(ctx: SbenvContext, spec: str, *, check: bool = True) -> BinaryResult:
    """Record ``spec`` as the host default.

    With ``check`` the spec is resolved first (downloading a version if
    needed) so that a typo is caught now rather than at the next start.
    """
    result = BinaryResult(spec=spec)
    if check:
        try:
            result.resolved = ctx.resolver().resolve(spec)
        except BinaryResolutionError as e:
            result.error = str(e)
            return result

    defaults = ctx.load_defaults()
    defaults.binary = spec
    ctx.save_defaults(defaults)
    result.default = spec
    return result


def clear_default_binary(ctx: SbenvContext) -> BinaryResult:
    defaults = ctx.load_defaults()
    result = BinaryResult(spec=defaults.binary)
    defaults.binary = None
    ctx.save_defaults(defaults)
    return result


# ── Cache ───────────────────────────────────────────────────────


@dataclass
class CachedBinaries:
    cache_dir: Path | None = None
    versions: dict[str, str] = field(default_factory=dict)  # version → executable
    default: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cache_dir": str(self.cache_dir),
            "versions": self.versions,
            "default": self.default,
        }


def list_binaries(ctx: SbenvContext) -> CachedBinaries:
    cache = ctx.cache()
    return CachedBinaries(
        cache_dir=cache.root,
        versions={v: str(cache.executable(v)) for v in cache.installed_versions()},
        default=ctx.load_defaults().binary,
    )


@dataclass
class RemoveBinaryResult:
    version: str = ""
    removed: bool = False
    pinned_by: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {"version": self.version, "removed": self.removed, "pinned_by": self.pinned_by}


def remove_binary(ctx: SbenvContext, version: str) -> RemoveBinaryResult:
    """Delete a cached version.

    Environments pinned to it are reported; they will download it again on
    their next start.
    """
    if not is_version_spec(version):
        return RemoveBinaryResult(version=version, error=f"Not a version: {version}")
    version = normalize_version(version)
    result = RemoveBinaryResult(version=version)
    cache = ctx.cache()
    exe = str(cache.executable(version))

    for key, record in sorted(ctx.load_registry().environments.items()):
        pinned = record.binary
        if pinned and (pinned.path == exe or (not pinned.path and pinned.version == version)):
            result.pinned_by.append(key)

    result.removed = cache.remove(version)
    if not result.removed:
        result.error = f"Version {version} is not in the cache"
    return result
