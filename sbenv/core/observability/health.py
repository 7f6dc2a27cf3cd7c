"""
Health probe — is the environment's daemon answering HTTP?

One lightweight GET against the daemon's status endpoint.  Three outcomes
must stay distinguishable in status output:

    healthy      200, or 401 (control API up, wants the bearer token)
    unhealthy    any other status code
    unreachable  no response at all

``unknown`` is reported when there is no URL to probe.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sbenv.adapters.base import HttpClient, HttpError
from sbenv.core.data import constants as C
from sbenv.core.models.environment import LocalConfig, Registry
from sbenv.core.services.registry import port_for_path

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
UNREACHABLE = "unreachable"
UNKNOWN = "unknown"

_RESPONDING_CODES = frozenset({200, 401})


@dataclass
class ProbeResult:
    """Outcome of a single health probe."""

    status: str = UNKNOWN
    url: str = ""
    code: int | None = None
    message: str = ""

    @property
    def responding(self) -> bool:
        return self.status == HEALTHY

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "url": self.url,
            "code": self.code,
            "message": self.message,
        }


def probe_base_url(
    config: LocalConfig | None,
    registry: Registry | None,
    root: Path | str,
) -> str | None:
    """Base URL of the daemon: the config's ``client_url``, else the registry port."""
    if config and config.client_url:
        return config.client_url.rstrip("/")
    port = port_for_path(registry, root) if registry else 0
    if port:
        return f"http://127.0.0.1:{port}"
    return None


def probe_daemon(
    http: HttpClient,
    base_url: str | None,
    *,
    token: str | None = None,
    timeout: float = 2.0,
) -> ProbeResult:
    """GET ``<base_url>/v1/status`` and classify the answer. Never raises."""
    if not base_url:
        return ProbeResult(status=UNKNOWN, message="No URL configured for this environment")

    url = base_url.rstrip("/") + C.STATUS_ENDPOINT
    headers = {"Authorization": f"Bearer {token}"} if token else None
    try:
        code = http.get_status(url, headers=headers, timeout=timeout)
    except HttpError as e:
        logger.debug("Probe %s unreachable: %s", url, e)
        return ProbeResult(status=UNREACHABLE, url=url, message=str(e))

    if code in _RESPONDING_CODES:
        message = "OK" if code == 200 else "Control API requires token"
        return ProbeResult(status=HEALTHY, url=url, code=code, message=message)
    return ProbeResult(status=UNHEALTHY, url=url, code=code, message=f"HTTP {code}")
