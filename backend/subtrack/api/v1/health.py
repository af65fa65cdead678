"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app

from subtrack.api.deps import json_response, timing
from subtrack.core.database import get_connection_manager

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application and database health information."""

    manager = get_connection_manager()
    db_status = "ok" if manager.ping() else "fail"
    version = current_app.config.get("APP_VERSION", "dev")
    payload = {"status": "ok", "db": db_status, "version": version}
    return json_response(payload, status=200 if db_status == "ok" else 503)
