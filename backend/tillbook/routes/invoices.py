# Overview: Flask API routes for standalone invoices.

from flask import Blueprint, request, jsonify

from ..services import invoice_service
from ..services.invoice_service import InvoiceNotFoundError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_admin


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
def list_invoices_route(ctx):
    limit = request.args.get("limit", default=100, type=int)
    invoices = invoice_service.list_invoices(search=request.args.get("q"), limit=limit)
    return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)}), 200


@invoices_bp.get("/defaults")
@require_auth
def invoice_defaults_route(ctx):
    return jsonify(invoice_service.default_numbers()), 200


@invoices_bp.get("/prefill/<string:transaction_number>")
@require_auth
def prefill_route(transaction_number: str, ctx):
    try:
        data = invoice_service.prefill_from_transaction(transaction_number)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(data), 200


@invoices_bp.post("")
@require_auth
def create_invoice_route(ctx):
    payload = request.get_json(silent=True) or {}
    try:
        invoice = invoice_service.create_invoice(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"invoice": invoice.to_dict()}), 201


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int, ctx):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
@require_admin
def delete_invoice_route(invoice_id: int, ctx):
    try:
        invoice_service.delete_invoice(invoice_id)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"ok": True}), 200
