"""
Printing subsystem for Receipt Spooler.

- fetcher: download a remote image into the spool directory
- connection: printer connection with bounded retry
- executor: align, image, cut on an open printer
- worker: the serialized job queue and per-job pipeline
"""

from .connection import ConnectionManager, DeviceHandle, PrinterAddress, connect
from .executor import PrintExecutor, PrintResult
from .fetcher import ImageFetcher, LocalImageResource, resolve_source_uri
from .worker import JobDescriptor, JobState, Processor, ProcessorState, build_processor

__all__ = [
    "ConnectionManager",
    "DeviceHandle",
    "ImageFetcher",
    "JobDescriptor",
    "JobState",
    "LocalImageResource",
    "PrintExecutor",
    "PrintResult",
    "PrinterAddress",
    "Processor",
    "ProcessorState",
    "build_processor",
    "connect",
    "resolve_source_uri",
]
