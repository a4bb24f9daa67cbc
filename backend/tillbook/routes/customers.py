# Overview: Flask API routes for customers.

from flask import Blueprint, request, jsonify

from ..services import customer_service
from ..services.customer_service import CustomerNotFoundError
from ..validation import ValidationError
from ..decorators import require_auth, require_admin


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route(ctx):
    customers = customer_service.list_customers(search=request.args.get("q"))
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int, ctx):
    try:
        customer = customer_service.get_customer(customer_id)
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.post("")
@require_auth
def create_customer_route(ctx):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"customer": customer.to_dict()}), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int, ctx):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_customer(customer_id, payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_admin
def delete_customer_route(customer_id: int, ctx):
    try:
        customer_service.delete_customer(customer_id)
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"ok": True}), 200
