# wms/routes/system.py
"""
System health, version, and whole-store maintenance endpoints.

Export, import and reset operate on the entire store. Import and reset are
destructive; import validates the document before anything is replaced.
"""

import sys
import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import Order, Product, User
from ..services import backup_service
from ..services.concurrency import get_snapshot_store
from ..time_utils import utcnow
from .common import json_body, json_error

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Count a few core tables; any failure marks the store unhealthy."""
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "orders": db.session.query(Order).count(),
            "users": db.session.query(User).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_snapshot_health() -> dict:
    store = get_snapshot_store()
    if not store.is_valid:
        return {"status": "unhealthy", "error": "Snapshot handle invalidated"}
    if not store.exists():
        return {"status": "degraded", "warning": "No snapshot persisted yet"}
    return {"status": "healthy", "details": {"key": store.key, "bytes": store.path.stat().st_size}}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: a component is unhealthy
    """
    checks = {
        "database": check_database_health(),
        "snapshot": check_snapshot_health(),
    }
    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        overall, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall, http_status = "degraded", 200
    else:
        overall, http_status = "healthy", 200

    return {
        "status": overall,
        "timestamp": utcnow().isoformat() + "Z",
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "7.0.0",
        "snapshot_key": current_app.config["SNAPSHOT_KEY"],
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }


@system_bp.get("/api/system/export")
def export_route():
    try:
        return jsonify(backup_service.export_data()), 200
    except Exception as exc:
        return json_error(exc, "Failed to export data")


@system_bp.post("/api/system/import")
def import_route():
    try:
        counts = backup_service.import_data(json_body())
        return jsonify({"imported": counts}), 200
    except Exception as exc:
        return json_error(exc, "Failed to import data")


@system_bp.post("/api/system/reset")
def reset_route():
    try:
        backup_service.reset_database()
        return jsonify({"status": "reset"}), 200
    except Exception as exc:
        return json_error(exc, "Failed to reset data")
