"""
Stand-ins for the real daemon binary.
"""

from __future__ import annotations

from pathlib import Path

VERSION_BANNER = "syftbox version {version} (deadbeef; go1.24.1; linux/amd64; 2025-01-01T00:00:00Z)"

# Runs until signalled.  No ``exec``: the shell keeps the full argument list
# (including the config path) visible in the process table.
FAKE_DAEMON_SCRIPT = """#!/bin/sh
if [ "$1" = "--version" ]; then
    echo "syftbox version {version} (deadbeef; go1.24.1; linux/amd64; 2025-01-01T00:00:00Z)"
    exit 0
fi
echo "fake daemon starting: $*"
while true; do
    sleep 1
done
"""

# Exits straight away, like a daemon rejecting its config.
CRASHING_DAEMON_SCRIPT = """#!/bin/sh
if [ "$1" = "--version" ]; then
    echo "syftbox version {version}"
    exit 0
fi
echo "fatal: bad config" >&2
exit 3
"""


def write_script(path: Path, template: str, version: str = "0.9.9") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(template.format(version=version))
    path.chmod(0o755)
    return path
