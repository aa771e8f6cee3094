"""
Receipt Spooler package

This module provides an application factory with minimal wiring:
- Configures logging via receipt_spooler.core.logging
- Resolves the service config (JSON file + RECEIPTSPOOLER_* env)
- Builds the print Processor and attaches it as app.extensions["spooler"]
- Registers the intake, jobs and health blueprints
"""

from __future__ import annotations

import importlib
import logging
import uuid
from collections.abc import Sequence
from typing import Optional

from flask import Flask, g

from receipt_spooler.core.config import resolve_config
from receipt_spooler.core.errors import ConfigError
from receipt_spooler.core.logging import configure_logging
from receipt_spooler.printing.worker import Processor, build_processor

logger = logging.getLogger(__name__)

DEFAULT_BLUEPRINTS = [
    ("receipt_spooler.web.api", "api_bp"),  # event intake (v1)
    ("receipt_spooler.web.jobs", "jobs_bp"),  # job status
    ("receipt_spooler.web.health", "health_bp"),  # health endpoint
]


def _register_blueprint(app: Flask, import_path: str, attr: str) -> None:
    mod = importlib.import_module(import_path)
    app.register_blueprint(getattr(mod, attr))
    app.logger.debug(f"Registered blueprint: {import_path}.{attr}")


def _set_request_id() -> None:
    g.request_id = getattr(g, "request_id", uuid.uuid4().hex)


def create_app(
    config_overrides: Optional[dict] = None,
    blueprints: Optional[Sequence[tuple[str, str]]] = None,
    register_worker: bool = True,
    processor: Optional[Processor] = None,
    config_path: Optional[str] = None,
) -> Flask:
    """
    Application factory.

    Parameters:
    - config_overrides: service config values applied on top of file and env
    - blueprints: optional list of (import_path, attribute) tuples to register
    - register_worker: if True, enqueued jobs start a background drain thread;
      if False, jobs wait until Processor.drain() is called
    - processor: use this Processor instead of building one from config
    - config_path: explicit JSON config file (defaults to the resolved path)

    Returns:
    - Flask app instance
    """
    configure_logging()

    app = Flask("receipt_spooler")
    app.url_map.strict_slashes = False

    cfg = resolve_config(config_path, overrides=config_overrides)
    app.config["SPOOLER"] = cfg

    if processor is None:
        try:
            processor = build_processor(cfg, autostart=register_worker)
        except ConfigError as e:
            app.logger.warning("Print processor not started: %s", e)
    if processor is not None:
        app.extensions["spooler"] = processor
        app.logger.info(
            "Print processor ready for printer %s (retries=%s, backoff=%ss)",
            processor.connections.address,
            processor.connections.retries,
            processor.connections.backoff,
        )

    @app.before_request
    def _before_request():
        _set_request_id()

    for import_path, attr in blueprints or DEFAULT_BLUEPRINTS:
        _register_blueprint(app, import_path, attr)

    app.logger.info("Receipt Spooler app created")
    return app


__all__ = ["create_app"]
