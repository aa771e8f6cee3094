from __future__ import annotations

"""
Health endpoints for Receipt Spooler.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok" or "degraded")
- Processor state and queue size
- Printer reachability (a single connect + close while the printer is idle,
  otherwise the running job's connect outcome)
"""

from typing import Any, Dict

from flask import Blueprint, current_app

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    status: Dict[str, Any] = {"status": "ok"}
    processor = current_app.extensions.get("spooler")
    if processor is None:
        status["status"] = "degraded"
        status["reason"] = "no_config"
        return status, 200

    status.update(processor.status())

    ok, reason = processor.printer_reachable()
    status["printer_ok"] = ok
    status["printer"] = str(processor.connections.address)
    if not ok:
        status["status"] = "degraded"
        if reason:
            status["reason"] = reason
    return status, 200
