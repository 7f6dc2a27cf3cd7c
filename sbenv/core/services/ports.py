"""
Port allocation for new environments.

Ports come from a fixed inclusive range and are coordinated only through
the registry: a port is "taken" when some registered environment records
it.  The OS is never asked, so a port held by an unrelated program shows
up later as a daemon start failure, not here.

Sampling is random rather than a linear scan so that environments created
back to back do not pile up at the bottom of the range.
"""

from __future__ import annotations

import logging
import random

from sbenv.core.data import constants as C
from sbenv.core.models.environment import Registry

logger = logging.getLogger(__name__)


class PortRangeExhaustedError(Exception):
    """Raised when no free port is left in the allocation range."""

    def __init__(self, low: int, high: int, attempts: int):
        self.low = low
        self.high = high
        self.attempts = attempts
        super().__init__(
            f"Port range {low}-{high} exhausted: no free port after {attempts} attempts"
        )


def allocate_port(
    registry: Registry,
    *,
    rng: random.Random | None = None,
    attempts: int = C.PORT_ALLOCATION_ATTEMPTS,
    low: int = C.PORT_RANGE_START,
    high: int = C.PORT_RANGE_END,
) -> int:
    """Pick a port in ``[low, high]`` not recorded by any environment.

    Args:
        registry: Current registry (the only source of truth for "taken").
        rng: Random source (tests pass a seeded one).
        attempts: Maximum number of random draws.
        low: First port of the range.
        high: Last port of the range (inclusive).

    Returns:
        A free, non-zero port.

    Raises:
        PortRangeExhaustedError: If every draw hit a taken port.
    """
    rng = rng or random.Random()
    used = registry.used_ports()

    # Full range: don't bother drawing.
    if all(port in used for port in range(low, high + 1)):
        raise PortRangeExhaustedError(low, high, 0)

    for attempt in range(1, attempts + 1):
        port = rng.randint(low, high)
        if port not in used:
            logger.debug("Allocated port %d after %d draw(s)", port, attempt)
            return port

    raise PortRangeExhaustedError(low, high, attempts)
