# Ensure the repository root is on sys.path so `receipt_spooler` can be imported in tests.

import io
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()

import pytest  # noqa: E402
import requests  # noqa: E402
from PIL import Image  # noqa: E402


def png_bytes(size=(16, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("L", size, 255).save(buf, format="PNG")
    return buf.getvalue()


class FakePrinter:
    """Stands in for escpos.printer.Network and records every call."""

    def __init__(self, fail_open: bool = False, fail_on: Optional[str] = None, factory=None):
        self.fail_open = fail_open
        self.fail_on = fail_on
        self.factory = factory
        self.is_open = False
        self.calls: List[str] = []
        self.images: List[Dict[str, Any]] = []
        self.close_calls = 0

    def _maybe_fail(self, name: str) -> None:
        if self.fail_on == name:
            raise OSError(f"{name} failed")

    def open(self):
        self.calls.append("open")
        if self.fail_open:
            raise OSError("connection refused")
        self.is_open = True
        if self.factory is not None:
            self.factory._opened()

    def set(self, **kwargs):
        self.calls.append("set")
        self._maybe_fail("set")
        self.align = kwargs.get("align")

    def image(self, img, **kwargs):
        self.calls.append("image")
        self._maybe_fail("image")
        self.images.append({"size": img.size, **kwargs})

    def cut(self):
        self.calls.append("cut")
        self._maybe_fail("cut")

    def close(self):
        self.calls.append("close")
        self.close_calls += 1
        if self.is_open:
            self.is_open = False
            if self.factory is not None:
                self.factory._closed()


class PrinterFactory:
    """Connection factory handing out FakePrinters; the first `failures` refuse to open."""

    def __init__(self, failures: int = 0, fail_on: Optional[str] = None):
        self.failures = failures
        self.fail_on = fail_on
        self.printers: List[FakePrinter] = []
        self.open_now = 0
        self.max_open = 0
        self._lock = threading.Lock()

    def _opened(self) -> None:
        with self._lock:
            self.open_now += 1
            self.max_open = max(self.max_open, self.open_now)

    def _closed(self) -> None:
        with self._lock:
            self.open_now -= 1

    def __call__(self, address, **kwargs):
        p = FakePrinter(fail_open=len(self.printers) < self.failures, fail_on=self.fail_on, factory=self)
        self.printers.append(p)
        return p

    @property
    def attempts(self) -> int:
        return len(self.printers)


class FakeResponse:
    def __init__(self, chunks=None, status: int = 200, error: Optional[Exception] = None):
        self.chunks = list(chunks or [])
        self.status_code = status
        self.error = error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


class FakeSession:
    """
    Maps URIs to FakeResponses (or exceptions to raise from get()).
    Unknown URIs return a small valid PNG.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes = routes or {}
        self.requested: List[str] = []

    def get(self, uri, stream=False, timeout=None):
        self.requested.append(uri)
        route = self.routes.get(uri)
        if isinstance(route, Exception):
            raise route
        if route is None:
            return FakeResponse([png_bytes()])
        return route


@pytest.fixture
def spool_dir(tmp_path):
    d = tmp_path / "spool"
    d.mkdir()
    return d


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    # Never pick up a developer's real config or env overrides.
    monkeypatch.setenv("RECEIPTSPOOLER_CONFIG_PATH", str(tmp_path / "missing-config.json"))
    for key in ("PRINTER_HOST", "PRINTER_PORT", "CONNECT_RETRIES", "CONNECT_BACKOFF_SECONDS", "WEBHOOK_TOKEN"):
        monkeypatch.delenv(f"RECEIPTSPOOLER_{key}", raising=False)
