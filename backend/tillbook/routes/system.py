# Overview: System health endpoint.

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import User, Transaction
from ..services import storage_service
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        transaction_count = db.session.query(Transaction).count()
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": {"users": user_count, "transactions": transaction_count},
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


def check_storage_health() -> dict:
    start_time = time.time()
    try:
        files = storage_service.get_bucket().list_files()
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "details": {"files": len(files)},
        }
    except Exception:
        current_app.logger.exception("Storage health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Storage error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database and storage healthy
    - 503: one or more unhealthy
    """
    checks = {
        "database": check_database_health(),
        "storage": check_storage_health(),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())
    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "checks": checks,
    }
    return response, 200 if healthy else 503
