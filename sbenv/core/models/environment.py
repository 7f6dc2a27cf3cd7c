"""
Environment models — the documents sbenv reads and writes.

Four documents live on disk:

    Registry        ~/.sbenv/envs.json           identity key → EnvironmentRecord
    GlobalDefaults  ~/.sbenv/config.json         default binary spec
    LocalConfig     <root>/.syftbox/config.json  daemon connection settings
    Marker          <root>/.sbenv                discovery snapshot for other tools

LocalConfig is shared with the daemon, which rewrites it during its own
login flow.  Fields sbenv does not know about are kept as extras so that a
load/save round-trip never drops them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sbenv.core.data import constants as C


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class BinaryInfo(BaseModel):
    """A resolved daemon executable and whatever we know about its build."""

    path: str | None = None
    version: str | None = None
    hash: str | None = None
    toolchain: str | None = None
    os: str | None = None
    arch: str | None = None
    built_at: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.path or self.version)

    def label(self) -> str:
        """Short human-readable form: ``0.5.0 (/path/to/syftbox)``."""
        if self.version and self.path:
            return f"{self.version} ({self.path})"
        return self.version or self.path or "unset"


class EnvironmentRecord(BaseModel):
    """One registered environment.

    A recorded ``binary.path`` wins over ``binary.version``: the version is
    kept as metadata, the path is what gets executed.
    """

    path: str
    email: str
    port: int = 0  # 0 = unassigned
    name: str = ""
    server_url: str = C.DEFAULT_SERVER_URL
    dev_mode: bool = False
    binary: BinaryInfo | None = None
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)

    def touch(self) -> None:
        self.updated_at = _now_iso()

    @property
    def display_name(self) -> str:
        return self.name or self.path.rstrip("/").rsplit("/", 1)[-1]


class Registry(BaseModel):
    """All known environments, keyed by identity (``email@canonical-path``)."""

    environments: dict[str, EnvironmentRecord] = Field(default_factory=dict)

    def used_ports(self) -> set[int]:
        return {r.port for r in self.environments.values() if r.port}

    def __len__(self) -> int:
        return len(self.environments)


class GlobalDefaults(BaseModel):
    """Host-wide defaults applied when an environment pins nothing."""

    binary: str | None = None


class LocalConfig(BaseModel):
    """Connection settings co-located with an environment root.

    ``refresh_token`` / ``access_token`` belong to the daemon; everything
    else is owned by sbenv and restored after the daemon has had a chance
    to clobber it.
    """

    model_config = ConfigDict(extra="allow")

    email: str = ""
    server_url: str = C.DEFAULT_SERVER_URL
    client_url: str = ""
    data_dir: str = ""
    dev_mode: bool = False
    client_token: str | None = None
    refresh_token: str | None = None

    def credentials(self) -> dict[str, Any]:
        """Credential fields currently set, including daemon-written extras."""
        data = self.model_dump(mode="json")
        return {k: v for k, v in data.items() if k in C.CREDENTIAL_FIELDS and v}


class Marker(BaseModel):
    """Discovery snapshot written once at an environment root."""

    email: str
    port: int = 0
    server_url: str = C.DEFAULT_SERVER_URL
    binary: BinaryInfo | None = None
    created_at: str = Field(default_factory=_now_iso)
