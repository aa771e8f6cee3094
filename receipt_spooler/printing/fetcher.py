"""
Image acquisition for print jobs.

Downloads a remote image into the spool directory. The local filename comes
from the final path segment of the URI, so a given URI always lands on the
same file. Partial downloads never outlive a failed fetch.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import requests
from werkzeug.utils import secure_filename

from receipt_spooler.core.config import ensure_dir
from receipt_spooler.core.errors import FetchError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class LocalImageResource:
    """A downloaded image owned by exactly one running job."""

    path: Path
    source_uri: str
    size: int


def resolve_source_uri(full_path: str, base_url: Optional[str] = None) -> str:
    """
    Turn an event's `fullPath` into a fetchable URI.

    Absolute http(s) URLs pass through untouched; anything else is joined onto
    `base_url` when one is configured.
    """
    value = (full_path or "").strip()
    if urlparse(value).scheme or not base_url:
        return value
    return base_url.rstrip("/") + "/" + value.lstrip("/")


def local_name_for(source_uri: str) -> str:
    """
    Derive the spool filename from the URI's final path segment.

    Raises FetchError for malformed URIs.
    """
    parsed = urlparse(source_uri or "")
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
        raise FetchError(f"Malformed image URI: {source_uri!r}")
    segment = unquote(parsed.path.rstrip("/").rsplit("/", 1)[-1])
    name = secure_filename(segment)
    if not name:
        raise FetchError(f"Image URI has no usable file name: {source_uri!r}")
    return name


class ImageFetcher:
    def __init__(
        self,
        spool_dir: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.spool_dir = spool_dir
        self.timeout = timeout
        self.session = session or requests.Session()

    def destination_for(self, source_uri: str) -> Path:
        return Path(self.spool_dir) / local_name_for(source_uri)

    def fetch(self, source_uri: str) -> LocalImageResource:
        """
        Download `source_uri` into the spool directory.

        Raises:
            FetchError on a malformed URI, a transfer error, a non-2xx response,
            an empty body, or when the destination cannot be written.
        """
        dest = self.destination_for(source_uri)
        try:
            ensure_dir(self.spool_dir)
        except OSError as e:
            raise FetchError(f"Spool directory unavailable: {self.spool_dir}") from e

        logger.info("Fetching %s -> %s", source_uri, dest)
        opened = False
        try:
            with self.session.get(source_uri, stream=True, timeout=self.timeout) as resp:
                resp.raise_for_status()
                with open(dest, "wb") as f:
                    opened = True
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            size = dest.stat().st_size
            if size <= 0:
                raise FetchError(f"Downloaded image is empty: {source_uri}")
        except FetchError:
            self._discard(dest)
            raise
        except (requests.RequestException, OSError) as e:
            if opened:
                self._discard(dest)
            raise FetchError(f"Failed to fetch {source_uri}: {e}") from e

        logger.info("Fetched %s (%d bytes)", dest.name, size)
        return LocalImageResource(path=dest, source_uri=source_uri, size=size)

    def _discard(self, dest: Path) -> None:
        try:
            os.remove(dest)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove partial download %s: %s", dest, e, extra={"error_kind": "CleanupError"})


__all__ = ["ImageFetcher", "LocalImageResource", "local_name_for", "resolve_source_uri"]
