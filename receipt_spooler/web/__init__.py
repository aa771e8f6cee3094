"""
Web module for Receipt Spooler.

Exposes blueprints for:
- Event intake API: api_bp
- Jobs endpoints: jobs_bp
- Health endpoint: health_bp
"""

from .api import api_bp
from .health import health_bp
from .jobs import jobs_bp

__all__ = ["api_bp", "health_bp", "jobs_bp"]
