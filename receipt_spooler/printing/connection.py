"""
Printer connection lifecycle.

`connect()` makes a bounded number of attempts with a fixed pause between
them and returns None when the printer stays unreachable. Callers branch on
the absent handle and skip printing instead of failing hard.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, NamedTuple, Optional

from escpos.exceptions import Error as EscposError

from receipt_spooler.core.errors import PrinterConnectionError

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_SECONDS = 1.0


class PrinterAddress(NamedTuple):
    host: str
    port: int = 9100

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class DeviceHandle:
    """
    An open printer session. close() is idempotent so the executor and the
    owning scope can both release it safely.
    """

    def __init__(self, printer: Any, address: PrinterAddress):
        self.printer = printer
        self.address = address
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.printer.close()
        except Exception as e:
            logger.warning("Error closing printer %s: %s", self.address, e)
        else:
            logger.info("Printer connection to %s closed", self.address)


def _network_printer(address: PrinterAddress, profile: Optional[str] = None, timeout: float = 60.0):
    from escpos.printer import Network

    if profile:
        return Network(address.host, address.port, timeout=timeout, profile=profile)
    return Network(address.host, address.port, timeout=timeout)


def open_once(
    address: PrinterAddress,
    factory: Callable[..., Any] = _network_printer,
    **kwargs: Any,
) -> DeviceHandle:
    """
    Make a single connection attempt.

    Raises PrinterConnectionError; a half-open printer object is closed first.
    """
    printer = None
    try:
        printer = factory(address, **kwargs)
        printer.open()
    except (OSError, EscposError) as e:
        if printer is not None:
            try:
                printer.close()
            except Exception:
                pass
        raise PrinterConnectionError(f"Cannot connect to printer at {address}: {e}") from e
    return DeviceHandle(printer, address)


def connect(
    address: PrinterAddress,
    retries: int = DEFAULT_RETRIES,
    backoff: float = DEFAULT_BACKOFF_SECONDS,
    factory: Callable[..., Any] = _network_printer,
    **kwargs: Any,
) -> Optional[DeviceHandle]:
    """
    Open a connection, trying up to `retries` times with a fixed `backoff`
    (seconds) between attempts. Returns None once all attempts have failed.
    """
    attempts = max(1, int(retries))
    for attempt in range(1, attempts + 1):
        try:
            handle = open_once(address, factory=factory, **kwargs)
        except PrinterConnectionError as e:
            logger.warning(
                "Printer connection attempt %d/%d failed: %s",
                attempt,
                attempts,
                e,
                extra={"error_kind": e.kind},
            )
            if attempt < attempts:
                time.sleep(backoff)
            continue
        logger.info("Printer connection established to %s (attempt %d)", address, attempt)
        return handle

    logger.error("Printer at %s unreachable after %d attempts", address, attempts)
    return None


class ConnectionManager:
    """
    Binds a printer address and the retry policy taken from config.
    """

    def __init__(
        self,
        address: PrinterAddress,
        retries: int = DEFAULT_RETRIES,
        backoff: float = DEFAULT_BACKOFF_SECONDS,
        profile: Optional[str] = None,
        timeout: float = 60.0,
        factory: Callable[..., Any] = _network_printer,
    ):
        self.address = address
        self.retries = retries
        self.backoff = backoff
        self.profile = profile or None
        self.timeout = timeout
        self.factory = factory

    def _factory_kwargs(self) -> dict:
        return {"profile": self.profile, "timeout": self.timeout}

    def connect(self) -> Optional[DeviceHandle]:
        return connect(
            self.address,
            retries=self.retries,
            backoff=self.backoff,
            factory=self.factory,
            **self._factory_kwargs(),
        )

    @contextmanager
    def session(self) -> Iterator[Optional[DeviceHandle]]:
        """
        Yield a connected handle (or None) and always close it on exit.
        """
        handle = self.connect()
        try:
            yield handle
        finally:
            if handle is not None:
                handle.close()

    def ping(self) -> tuple[bool, Optional[str]]:
        """
        One attempt, no retry: connect and close immediately.

        Returns (ok, reason) where reason is a short code on failure.
        """
        try:
            handle = open_once(self.address, factory=self.factory, **self._factory_kwargs())
        except PrinterConnectionError as e:
            cause = e.__cause__ or e
            return False, f"printer_unreachable: {type(cause).__name__}"
        handle.close()
        return True, None


__all__ = [
    "DEFAULT_BACKOFF_SECONDS",
    "DEFAULT_RETRIES",
    "ConnectionManager",
    "DeviceHandle",
    "PrinterAddress",
    "connect",
    "open_once",
]
