"""
Command runner — the single place short-lived commands are run.

Used to ask a daemon binary for its version.  Failures are captured in the
``CommandResult``; nothing here raises.
"""

from __future__ import annotations

import logging
import subprocess
import time

from sbenv.adapters.base import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class SubprocessRunner(CommandRunner):
    """Run commands with ``subprocess.run`` and capture output."""

    @property
    def name(self) -> str:
        return "command"

    def run(self, argv: list[str], *, timeout: int = 10) -> CommandResult:
        logger.debug("Executing: %s", " ".join(argv))
        start = time.monotonic()
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(ok=False, error=f"Command timed out after {timeout}s")
        except OSError as e:
            return CommandResult(ok=False, error=f"Command execution error: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("%s exited %d in %dms", argv[0], result.returncode, elapsed_ms)

        stdout = result.stdout[-2000:] if result.stdout else ""
        stderr = result.stderr[-2000:] if result.stderr else ""
        if result.returncode == 0:
            return CommandResult(ok=True, returncode=0, stdout=stdout, stderr=stderr)
        return CommandResult(
            ok=False,
            returncode=result.returncode,
            stdout=stdout,
            stderr=stderr,
            error=stderr.strip() or f"Command failed (exit {result.returncode})",
        )
