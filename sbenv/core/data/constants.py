"""
L0 Data — Module-level constants.

Pure data. No logic. No imports beyond stdlib.
"""

from __future__ import annotations

# ── Daemon identity ─────────────────────────────────────────────

DAEMON_NAME = "syftbox"
DEFAULT_RELEASE_REPO = "OpenMined/syftbox"
DEFAULT_SERVER_URL = "https://syftbox.net"
STATUS_ENDPOINT = "/v1/status"

# ── Port range (inclusive) ──────────────────────────────────────

PORT_RANGE_START = 7938
PORT_RANGE_END = 7999
PORT_ALLOCATION_ATTEMPTS = 100

# ── File names ──────────────────────────────────────────────────

SBENV_DIR_NAME = ".sbenv"
REGISTRY_FILE = "envs.json"
DEFAULTS_FILE = "config.json"
BINARY_CACHE_DIR = "binaries"

DAEMON_DIR_NAME = ".syftbox"
LOCAL_CONFIG_FILE = "config.json"
PID_FILE = "syftbox.pid"
LOG_DIR = "logs"
LOG_FILE = "syftbox.log"
MARKER_FILE = ".sbenv"

GLOBAL_ASIDE_SUFFIX = ".sbenv-aside"

# ── Local config fields written by the daemon's login flow ──────

CREDENTIAL_FIELDS: frozenset[str] = frozenset({"refresh_token", "access_token"})

# ── Platform synonyms used in release asset names ───────────────
#
# Upstream projects disagree on naming: Go-style (amd64/arm64) vs raw
# ``uname -m`` style (x86_64/aarch64), and darwin vs macos.  The first
# entry of each tuple is the canonical (goreleaser) spelling.

OS_ALIASES: dict[str, tuple[str, ...]] = {
    "linux": ("linux",),
    "darwin": ("darwin", "macos", "osx", "apple"),
    "windows": ("windows", "win64", "win"),
}

ARCH_ALIASES: dict[str, tuple[str, ...]] = {
    "amd64": ("amd64", "x86_64", "x64"),
    "arm64": ("arm64", "aarch64"),
}

_IARCH_MAP: dict[str, str] = {
    "x86_64": "amd64",
    "AMD64": "amd64",      # Windows / WSL2
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",      # macOS (Darwin reports arm64)
    "ARM64": "arm64",
}

# Asset scoring: higher is preferred.
ASSET_SCORE_TAR = 3
ASSET_SCORE_ZIP = 2
ASSET_SCORE_RAW = 1

TAR_SUFFIXES: tuple[str, ...] = (".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".tar")
ZIP_SUFFIXES: tuple[str, ...] = (".zip",)

# Release files that are never the binary itself.
NON_BINARY_SUFFIXES: tuple[str, ...] = (
    ".sha256", ".sha512", ".md5", ".sig", ".asc", ".pem", ".sbom",
    ".json", ".txt", ".deb", ".rpm", ".apk", ".msi", ".pkg", ".dmg",
)
