"""
Global config swap — make the daemon see this environment's config.

The daemon ignores its ``--config`` flag for some operations and always
reads ``~/.syftbox/config.json``.  While it starts up, that slot has to hold
the environment's config.  ``GlobalConfigSwap`` is a context manager:

    acquire  move the real global file aside, copy the env config into the slot
    release  put the real global file back byte-for-byte, restore the env's
             local config from the backup taken at acquire time, keeping any
             credential the daemon wrote in the meantime

Release runs on every exit path, including exceptions from the body, which
propagate unchanged afterwards.  Nothing is swapped when the slot is empty
or already is the environment's config.

A supervisor killed mid-swap leaves ``config.json.sbenv-aside`` behind; the
next swap puts it back before doing anything else.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from types import TracebackType
from typing import Any

from sbenv.core.data import constants as C
from sbenv.core.persistence.documents import write_json_atomic

logger = logging.getLogger(__name__)


def aside_path(global_path: Path) -> Path:
    return global_path.with_name(global_path.name + C.GLOBAL_ASIDE_SUFFIX)


def recover_interrupted_swap(global_path: Path) -> bool:
    """Put back a global config left aside by an interrupted swap.

    Returns:
        True if a leftover was restored.
    """
    aside = aside_path(global_path)
    if not aside.is_file():
        return False
    logger.warning("Restoring %s left aside by an interrupted start", global_path)
    os.replace(aside, global_path)
    return True


def _read_json_dict(raw: bytes | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return a == b


class GlobalConfigSwap:
    """Scoped takeover of the daemon's global config slot."""

    def __init__(self, global_path: Path, env_config_path: Path):
        self.global_path = global_path
        self.env_config_path = env_config_path
        self.aside = aside_path(global_path)
        self.swapped = False
        self._local_backup: bytes | None = None

    def __enter__(self) -> GlobalConfigSwap:
        recover_interrupted_swap(self.global_path)

        if not self.global_path.is_file():
            logger.debug("No global config at %s — nothing to swap", self.global_path)
            return self
        if _same_file(self.global_path, self.env_config_path):
            logger.debug("Global config is this environment's config — nothing to swap")
            return self

        self._local_backup = self.env_config_path.read_bytes()
        os.replace(self.global_path, self.aside)
        try:
            shutil.copyfile(self.env_config_path, self.global_path)
        except BaseException:
            os.replace(self.aside, self.global_path)
            raise
        self.swapped = True
        logger.info("Swapped %s into %s", self.env_config_path, self.global_path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if self.swapped:
            self.restore()
        return False

    def restore(self) -> None:
        """Undo the swap. Safe to call once; later calls do nothing."""
        if not self.swapped:
            return
        credentials = self._fresh_credentials()

        self.global_path.unlink(missing_ok=True)
        os.replace(self.aside, self.global_path)
        self.swapped = False
        logger.info("Restored original %s", self.global_path)

        try:
            self._restore_local(credentials)
        except OSError as e:
            logger.error("Could not restore %s: %s", self.env_config_path, e)

    def _fresh_credentials(self) -> dict[str, Any]:
        """Credentials the daemon wrote during the swap (slot copy or local file)."""
        backup = _read_json_dict(self._local_backup)
        sources = []
        for path in (self.env_config_path, self.global_path):
            try:
                sources.append(_read_json_dict(path.read_bytes()))
            except OSError:
                sources.append({})

        fresh: dict[str, Any] = {}
        for key in sorted(C.CREDENTIAL_FIELDS):
            for data in sources:
                value = data.get(key)
                if value and value != backup.get(key):
                    fresh[key] = value
                    break
        return fresh

    def _restore_local(self, credentials: dict[str, Any]) -> None:
        if self._local_backup is None:
            return
        if not credentials:
            self.env_config_path.write_bytes(self._local_backup)
            return
        data = _read_json_dict(self._local_backup)
        data.update(credentials)
        write_json_atomic(data, self.env_config_path, prefix=".config_")
        logger.info("Kept new credential(s) %s in %s", sorted(credentials), self.env_config_path)
