"""
Error taxonomy for Receipt Spooler.

Every failure a print job can hit maps onto one of these classes. The `kind`
attribute is what ends up in log records and job status payloads.
"""

from __future__ import annotations


class SpoolerError(Exception):
    """Base class for all errors raised by the spooler."""

    kind = "internal"


class ConfigError(SpoolerError):
    kind = "ConfigError"


class FetchError(SpoolerError):
    """The remote image could not be downloaded into the spool directory."""

    kind = "FetchError"


class PrinterConnectionError(SpoolerError):
    """A single connection attempt to the printer failed."""

    kind = "PrinterConnectionError"


class PrintError(SpoolerError):
    """The printer rejected or failed the image transfer or the cut."""

    kind = "PrintError"


class CleanupError(SpoolerError):
    """A spooled image could not be deleted. Logged, never fatal."""

    kind = "CleanupError"


def error_kind(exc: BaseException) -> str:
    return getattr(exc, "kind", "internal") if isinstance(exc, SpoolerError) else "internal"


__all__ = [
    "CleanupError",
    "ConfigError",
    "FetchError",
    "PrintError",
    "PrinterConnectionError",
    "SpoolerError",
    "error_kind",
]
