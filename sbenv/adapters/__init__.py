"""Adapters — bindings to the host's processes, network and filesystem.

Public re-exports for convenient access.
"""

from sbenv.adapters.base import (
    Adapter,
    ArchiveError,
    ArchiveExtractor,
    CommandResult,
    CommandRunner,
    HttpClient,
    HttpError,
    HttpUnreachableError,
    ProcessInfo,
    ProcessInspector,
    ProcessSpawner,
)
from sbenv.adapters.registry import AdapterSet

__all__ = [
    "Adapter",
    "AdapterSet",
    "ArchiveError",
    "ArchiveExtractor",
    "CommandResult",
    "CommandRunner",
    "HttpClient",
    "HttpError",
    "HttpUnreachableError",
    "ProcessInfo",
    "ProcessInspector",
    "ProcessSpawner",
]
