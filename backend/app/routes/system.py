# backend/app/routes/system.py
"""
System health endpoint and stored-upload serving.
"""

import time

from flask import Blueprint, current_app, jsonify, send_file
from sqlalchemy import text

from ..extensions import db
from ..models import Location
from ..services import upload_service
from ..validation import ServiceError
from app.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and that at least one warehouse exists.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        warehouses = db.session.query(Location).filter_by(type="WAREHOUSE", is_active=True).count()
        elapsed_ms = (time.time() - start_time) * 1000

        status = "healthy" if warehouses else "degraded"
        result = {
            "status": status,
            "latency_ms": round(elapsed_ms, 2),
            "details": {"active_warehouses": warehouses},
        }
        if not warehouses:
            result["warning"] = "No active warehouse configured"
        return result
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    """
    Health check.

    Returns:
    - 200: healthy or degraded (no warehouse yet)
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    return {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }, http_status


@system_bp.get("/uploads/<name>")
def serve_upload(name: str):
    """Serve a stored receiving photo or document."""
    try:
        path = upload_service.resolve_upload(name)
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    return send_file(path)
