# Overview: Flask API routes for business settings (receipt header).

from flask import Blueprint, request, jsonify

from ..services import settings_service
from ..validation import ValidationError
from ..decorators import require_auth


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route(ctx):
    return jsonify({"settings": settings_service.get_business_settings().to_dict()}), 200


@settings_bp.put("")
@require_auth
def update_settings_route(ctx):
    payload = request.get_json(silent=True) or {}
    try:
        settings = settings_service.update_business_settings(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"settings": settings.to_dict()}), 200
