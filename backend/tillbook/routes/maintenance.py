# Overview: Scheduled maintenance endpoints (called by cron, not by staff).

import hmac

from flask import Blueprint, request, jsonify, current_app

from ..services import maintenance_service


maintenance_bp = Blueprint("maintenance", __name__, url_prefix="/api/maintenance")


@maintenance_bp.post("/cleanup-old-files")
def cleanup_old_files_route():
    """
    Delete invoice files past the retention window.

    No request body. When CLEANUP_TOKEN is configured the caller must send
    it in the X-Cleanup-Token header.

    Returns 200 even when individual deletions fail; 500 only when the
    bucket cannot be listed.
    """
    expected = current_app.config.get("CLEANUP_TOKEN")
    if expected:
        supplied = request.headers.get("X-Cleanup-Token", "")
        if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
            return jsonify({"error": "Invalid cleanup token"}), 401

    try:
        result = maintenance_service.cleanup_old_files()
        return jsonify(result.to_dict()), 200
    except Exception as e:
        current_app.logger.exception("Cleanup error")
        return jsonify({
            "error": str(e) or "Unknown error",
            "message": "Failed to cleanup old files",
        }), 500
