# Overview: Flask API routes for the product catalog.

from flask import Blueprint, request, jsonify

from ..services import products_service
from ..services.products_service import ProductNotFoundError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_admin


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route(ctx):
    """
    Query params:
    - q: name filter
    - include_inactive: "true" to include deactivated products (admins only)
    """
    include_inactive = ctx.is_admin and request.args.get("include_inactive", "").lower() == "true"
    products = products_service.list_products(include_inactive=include_inactive, search=request.args.get("q"))
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int, ctx):
    try:
        product = products_service.get_product(product_id, include_inactive=ctx.is_admin)
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("")
@require_auth
def create_product_route(ctx):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"product": product.to_dict()}), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int, ctx):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"product": product.to_dict()}), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int, ctx):
    try:
        products_service.delete_product(product_id)
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"ok": True}), 200
