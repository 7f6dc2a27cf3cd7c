"""
Domain models — Pydantic types for sbenv.

All models are re-exported here for convenient access:

    from sbenv.core.models import EnvironmentRecord, Registry, LocalConfig
"""

from sbenv.core.models.environment import (
    BinaryInfo,
    EnvironmentRecord,
    GlobalDefaults,
    LocalConfig,
    Marker,
    Registry,
)

__all__ = [
    "BinaryInfo",
    "EnvironmentRecord",
    "GlobalDefaults",
    "LocalConfig",
    "Marker",
    "Registry",
]
