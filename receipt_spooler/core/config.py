"""
Config utilities for Receipt Spooler.

Responsibilities:
- Resolve config/spool paths with environment and XDG support
- Provide JSON load/save helpers for the service config
- Merge defaults, the JSON file and RECEIPTSPOOLER_* environment overrides
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

ENV_PREFIX = "RECEIPTSPOOLER_"


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/receiptspooler/config.json
    2) ~/.config/receiptspooler/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "receiptspooler" / "config.json")
    return str(Path.home() / ".config" / "receiptspooler" / "config.json")


def default_spool_path() -> str:
    """
    Resolve the default spool directory for downloaded images using:
    1) $XDG_CACHE_HOME/receiptspooler/spool
    2) ~/.cache/receiptspooler/spool
    """
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return str(Path(xdg) / "receiptspooler" / "spool")
    return str(Path.home() / ".cache" / "receiptspooler" / "spool")


def get_config_path() -> str:
    """
    Return the config path honoring RECEIPTSPOOLER_CONFIG_PATH override.
    """
    return os.environ.get(f"{ENV_PREFIX}CONFIG_PATH", default_config_path())


def ensure_dir(path: str) -> str:
    Path(path).mkdir(parents=True, exist_ok=True)
    return path


# Defaults double as the type table for environment overrides.
DEFAULTS: dict[str, Any] = {
    "printer_host": "",
    "printer_port": 9100,
    "printer_profile": "",
    "printer_timeout": 60.0,
    "connect_retries": 3,
    "connect_backoff_seconds": 1.0,
    "image_impl": "bitImageColumn",
    "image_base_url": "",
    "fetch_timeout": 30.0,
    "spool_dir": "",
    "jobs_max": 200,
    "webhook_token": "",
}


def load_config(path: Optional[str] = None) -> Optional[dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: dict[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


def _coerce(key: str, raw: str) -> Any:
    default = DEFAULTS.get(key)
    if isinstance(default, bool):
        return raw.lower() in ("1", "true", "yes")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def env_overrides() -> dict[str, Any]:
    """
    Collect RECEIPTSPOOLER_<KEY> overrides for every known config key.

    Raises ValueError when a numeric override cannot be parsed.
    """
    out: dict[str, Any] = {}
    for key in DEFAULTS:
        raw = os.environ.get(ENV_PREFIX + key.upper())
        if raw is None or raw == "":
            continue
        out[key] = _coerce(key, raw)
    return out


def resolve_config(path: Optional[str] = None, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """
    Build the effective config: DEFAULTS <- JSON file <- environment <- overrides.
    """
    cfg = dict(DEFAULTS)
    cfg.update(load_config(path) or {})
    cfg.update(env_overrides())
    if overrides:
        cfg.update(overrides)
    if not cfg.get("spool_dir"):
        cfg["spool_dir"] = default_spool_path()
    return cfg


__all__ = [
    "DEFAULTS",
    "ENV_PREFIX",
    "default_config_path",
    "default_spool_path",
    "ensure_dir",
    "env_overrides",
    "get_config_path",
    "load_config",
    "resolve_config",
    "save_config",
]
