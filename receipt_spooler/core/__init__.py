"""
Core utilities for Receipt Spooler.

This package groups non-Flask helpers used across the service:
- config: paths, JSON load/save, env overrides
- logging: Request/job aware logging filters/formatters and root logger config
- errors: the error taxonomy shared by the print pipeline
"""

from .config import (
    DEFAULTS,
    default_config_path,
    default_spool_path,
    ensure_dir,
    get_config_path,
    load_config,
    resolve_config,
    save_config,
)
from .errors import (
    CleanupError,
    ConfigError,
    FetchError,
    PrintError,
    PrinterConnectionError,
    SpoolerError,
)
from .logging import (
    JsonFormatter,
    RequestIdFilter,
    configure_logging,
)

__all__ = [
    # config
    "DEFAULTS",
    "default_config_path",
    "default_spool_path",
    "ensure_dir",
    "get_config_path",
    "load_config",
    "resolve_config",
    "save_config",
    # errors
    "CleanupError",
    "ConfigError",
    "FetchError",
    "PrintError",
    "PrinterConnectionError",
    "SpoolerError",
    # logging
    "configure_logging",
    "RequestIdFilter",
    "JsonFormatter",
]
