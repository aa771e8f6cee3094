from __future__ import annotations

"""
Event intake API (v1) for Receipt Spooler.

Endpoints:
- POST /api/v1/jobs          : Accept one print event (or a batch). Returns 202 + Location
- GET  /api/v1/jobs/<job_id> : Fetch job status

Payload shape (POST /api/v1/jobs):
  {"fullPath": "https://host/receipts/R1.jpg"}
  {"events": [{"fullPath": "..."}, {"source_uri": "..."}]}
"""

import hmac
import os
from typing import Any, Dict, List, Optional

from flask import Blueprint, current_app, jsonify, request, url_for
from pydantic import ValidationError

from receipt_spooler.printing.fetcher import resolve_source_uri
from receipt_spooler.printing.worker import Processor
from . import schemas

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except Exception:
        return default


MAX_EVENTS = _env_int("RECEIPTSPOOLER_MAX_EVENTS", 50)


def _json_error(msg: str, code: int = 400):
    return jsonify({"error": msg}), code


def _processor() -> Optional[Processor]:
    return current_app.extensions.get("spooler")


def _authorized() -> bool:
    token = str(current_app.config.get("SPOOLER", {}).get("webhook_token") or "")
    if not token:
        return True
    header = request.headers.get("Authorization", "")
    scheme, _, supplied = header.partition(" ")
    if scheme.lower() != "bearer" or not supplied:
        return False
    return hmac.compare_digest(supplied.strip().encode(), token.encode())


@api_bp.post("/jobs")
def submit_job():
    """
    Validate a print event (or batch) and enqueue one job per event.
    Returns 202 Accepted with a Location header to the first job's status.
    """
    if not _authorized():
        return _json_error("unauthorized", 401)
    if not request.is_json:
        return _json_error("Expected application/json body", 415)

    processor = _processor()
    if processor is None:
        return _json_error("Service not configured: printer_host is missing.", 503)

    data = request.get_json(silent=True)
    if data is None:
        return _json_error("invalid JSON payload", 400)
    try:
        req = schemas.JobSubmitRequest.model_validate(data, context={"limits": {"MAX_EVENTS": MAX_EVENTS}})
    except ValidationError as e:
        return _json_error(schemas.first_error_message(e.errors()), 400)

    base_url = current_app.config.get("SPOOLER", {}).get("image_base_url") or None
    accepted: List[schemas.JobAcceptedResponse] = []
    for event in req.events:
        uri = resolve_source_uri(event.full_path, base_url)
        job = processor.enqueue(uri)
        accepted.append(
            schemas.JobAcceptedResponse(
                id=job.id,
                status="queued",
                source_uri=job.source_uri,
                links=schemas.Links(
                    self=url_for("api.job_status", job_id=job.id),
                    job=url_for("jobs.job_status", job_id=job.id),
                ),
            )
        )
    current_app.logger.info("Accepted %d print event(s)", len(accepted))

    body: Dict[str, Any]
    if len(accepted) == 1:
        body = accepted[0].model_dump()
    else:
        body = schemas.BatchAcceptedResponse(jobs=accepted).model_dump()
    resp = jsonify(body)
    resp.status_code = 202
    resp.headers["Location"] = accepted[0].links.self
    return resp


@api_bp.get("/jobs/<job_id>")
def job_status(job_id: str):
    processor = _processor()
    job = processor.get_job(job_id) if processor else None
    if job:
        return job
    return _json_error("not_found", 404)
