"""
HTTP adapter — health probes, release metadata and downloads via urllib.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

from sbenv import __version__
from sbenv.adapters.base import HttpClient, HttpError, HttpUnreachableError

logger = logging.getLogger(__name__)

_USER_AGENT = f"sbenv/{__version__}"


def _fmt_size(n: int | float) -> str:
    """Format byte count to human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


class UrllibHttpClient(HttpClient):
    """Plain ``urllib.request`` client."""

    @property
    def name(self) -> str:
        return "http"

    def get_status(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 2.0,
    ) -> int:
        try:
            req = urllib.request.Request(
                url, headers={"User-Agent": _USER_AGENT, **(headers or {})},
            )
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                return resp.getcode()
        except urllib.error.HTTPError as e:
            return e.code
        except (urllib.error.URLError, TimeoutError, ConnectionError) as e:
            raise HttpUnreachableError(f"{url}: {getattr(e, 'reason', e)}") from e
        except (http.client.HTTPException, ValueError) as e:
            # Not an HTTP server, or not a usable URL.
            raise HttpUnreachableError(f"{url}: {type(e).__name__}: {e}") from e

    def get_json(self, url: str, *, timeout: float = 15.0) -> Any:
        try:
            req = urllib.request.Request(
                url,
                headers={
                    "Accept": "application/vnd.github.v3+json",
                    "User-Agent": _USER_AGENT,
                },
            )
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            raise HttpError(f"GET {url} returned HTTP {e.code}") from e
        except (urllib.error.URLError, TimeoutError, ConnectionError) as e:
            raise HttpUnreachableError(f"GET {url} failed: {getattr(e, 'reason', e)}") from e
        except json.JSONDecodeError as e:
            raise HttpError(f"GET {url} returned invalid JSON: {e}") from e
        except (http.client.HTTPException, ValueError) as e:
            raise HttpError(f"GET {url} failed: {type(e).__name__}: {e}") from e

    def download(self, url: str, dest: Path, *, timeout: float = 60.0) -> int:
        dest.parent.mkdir(parents=True, exist_ok=True)
        downloaded = 0
        try:
            req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                total = int(resp.headers.get("Content-Length", 0) or 0)
                with open(dest, "wb") as f:
                    while True:
                        chunk = resp.read(8192)
                        if not chunk:
                            break
                        f.write(chunk)
                        downloaded += len(chunk)
        except urllib.error.HTTPError as e:
            dest.unlink(missing_ok=True)
            raise HttpError(f"Download {url} returned HTTP {e.code}") from e
        except (urllib.error.URLError, TimeoutError, ConnectionError, OSError) as e:
            dest.unlink(missing_ok=True)
            raise HttpError(f"Download {url} failed: {getattr(e, 'reason', e)}") from e
        except (http.client.HTTPException, ValueError) as e:
            dest.unlink(missing_ok=True)
            raise HttpError(f"Download {url} failed: {type(e).__name__}: {e}") from e

        if total and downloaded < total:
            dest.unlink(missing_ok=True)
            raise HttpError(
                f"Download {url} truncated: {_fmt_size(downloaded)} of {_fmt_size(total)}"
            )
        logger.info("Downloaded %s (%s)", url, _fmt_size(downloaded))
        return downloaded
