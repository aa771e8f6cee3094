from __future__ import annotations

"""
Jobs endpoints for Receipt Spooler.

This blueprint exposes:
- GET /jobs: JSON list of recent jobs, newest first
- GET /jobs/<job_id>: JSON status for a specific job (404 if not found)
"""

from flask import Blueprint, current_app

jobs_bp = Blueprint("jobs", __name__)


@jobs_bp.get("/jobs/<job_id>")
def job_status(job_id: str):
    processor = current_app.extensions.get("spooler")
    job = processor.get_job(job_id) if processor else None
    if job:
        current_app.logger.info("GET /jobs/%s ok status=%s", job_id, job.get("status"))
        return job
    current_app.logger.info("GET /jobs/%s not found", job_id)
    return {"error": "not_found"}, 404


@jobs_bp.get("/jobs")
def jobs_list():
    processor = current_app.extensions.get("spooler")
    jobs = processor.list_jobs() if processor else []
    current_app.logger.info("GET /jobs list count=%d", len(jobs))
    return {"jobs": jobs}
