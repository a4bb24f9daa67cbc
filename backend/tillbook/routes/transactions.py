# Overview: Flask API routes for checkout, order status, refunds and delivery batches.

"""
Transaction API routes.

Everything that hangs off a single order lives under
/api/transactions/<id>/...; standalone documents (a delivery batch, a
refund) are addressable on their own for receipts.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import transaction_service, delivery_service, refund_service, receipts
from ..services.concurrency import CONCURRENCY_ERRORS
from ..services.transaction_service import TransactionError, TransactionNotFoundError, InvalidTransitionError
from ..services.delivery_service import DeliveryError, DeliveryNotFoundError
from ..services.refund_service import RefundError, RefundNotFoundError
from ..services.receipts import ReceiptNotFoundError
from ..validation import ValidationError, parse_positive_int
from ..decorators import require_auth, require_admin


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")
deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")
refunds_bp = Blueprint("refunds", __name__, url_prefix="/api/refunds")


def _conflict():
    return jsonify({"error": "The order was modified concurrently; please retry"}), 409


@transactions_bp.get("")
@require_auth
def list_transactions_route(ctx):
    """
    Newest first.

    Query params:
    - limit: max rows (default 50)
    - payment_status / delivery_status: exact filters
    """
    limit = request.args.get("limit", default=50, type=int)
    items = transaction_service.list_transactions(
        limit=limit,
        payment_status=request.args.get("payment_status"),
        delivery_status=request.args.get("delivery_status"),
    )
    return jsonify({"items": items, "count": len(items)}), 200


@transactions_bp.post("")
@require_auth
def create_transaction_route(ctx):
    """
    Check out a cart.

    Body: {"items": [{"product_id": int, "quantity": int}], "customer_id": int | null}
    """
    try:
        data = request.get_json(silent=True) or {}
        lines = data.get("items")
        if not isinstance(lines, list):
            return jsonify({"error": "items must be a list"}), 400

        customer_id = data.get("customer_id")
        if customer_id is not None:
            customer_id = parse_positive_int(customer_id, "customer_id")

        txn = transaction_service.create_transaction(lines, customer_id=customer_id)
        return jsonify({"transaction": transaction_service.transaction_detail(txn)}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TransactionError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int, ctx):
    try:
        txn = transaction_service.get_transaction(transaction_id)
    except TransactionNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"transaction": transaction_service.transaction_detail(txn)}), 200


@transactions_bp.patch("/<int:transaction_id>/status")
@require_auth
def update_status_route(transaction_id: int, ctx):
    """
    Body: {"payment_status": "paid" | "cancelled"} or {"delivery_status": "delivered"}
    """
    try:
        data = request.get_json(silent=True) or {}
        txn = transaction_service.set_status(
            transaction_id,
            payment_status=data.get("payment_status"),
            delivery_status=data.get("delivery_status"),
        )
        return jsonify({"transaction": txn.to_dict()}), 200

    except TransactionNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransitionError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except TransactionError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except CONCURRENCY_ERRORS:
        return _conflict()
    except Exception:
        current_app.logger.exception("Failed to update transaction status")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:transaction_id>")
@require_auth
@require_admin
def delete_transaction_route(transaction_id: int, ctx):
    try:
        transaction_service.delete_transaction(transaction_id)
    except TransactionNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"ok": True}), 200


@transactions_bp.get("/<int:transaction_id>/receipt")
@require_auth
def payment_receipt_route(transaction_id: int, ctx):
    try:
        receipt = receipts.build_payment_receipt(transaction_id)
    except ReceiptNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"receipt": receipt.to_dict()}), 200


# --- Refunds -----------------------------------------------------------------

@transactions_bp.get("/<int:transaction_id>/refunds")
@require_auth
def list_refunds_route(transaction_id: int, ctx):
    try:
        refunds = refund_service.list_refunds(transaction_id)
    except RefundNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": [r.to_dict() for r in refunds], "count": len(refunds)}), 200


@transactions_bp.post("/<int:transaction_id>/refunds")
@require_auth
def create_refund_route(transaction_id: int, ctx):
    """
    Body: {"amount_cents": int, "reason": str, "bank_name": str,
           "account_number": str, "account_name": str | null}
    """
    try:
        data = request.get_json(silent=True) or {}
        refund = refund_service.create_refund(
            transaction_id,
            amount_cents=data.get("amount_cents"),
            reason=data.get("reason"),
            bank_name=data.get("bank_name"),
            account_number=data.get("account_number"),
            account_name=data.get("account_name"),
        )
        return jsonify({"refund": refund.to_dict()}), 201

    except RefundNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except RefundError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except CONCURRENCY_ERRORS:
        return _conflict()
    except Exception:
        current_app.logger.exception("Failed to create refund")
        return jsonify({"error": "Internal server error"}), 500


@refunds_bp.get("/<int:refund_id>/receipt")
@require_auth
def refund_receipt_route(refund_id: int, ctx):
    try:
        receipt = receipts.build_refund_receipt(refund_id)
    except ReceiptNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"receipt": receipt.to_dict()}), 200


# --- Deliveries --------------------------------------------------------------

def _parse_selections(raw) -> dict[int, int]:
    """
    Accepts [{"transaction_item_id": id, "quantity": n}, ...] and returns
    {id: n}. Quantities are passed through for the service to validate.
    """
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")
    selections: dict[int, int] = {}
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError("each item must be an object")
        line_id = parse_positive_int(entry.get("transaction_item_id"), "transaction_item_id")
        if line_id in selections:
            raise ValidationError(f"transaction_item_id {line_id} listed more than once")
        selections[line_id] = entry.get("quantity")
    return selections


@transactions_bp.get("/<int:transaction_id>/delivery")
@require_auth
def delivery_progress_route(transaction_id: int, ctx):
    """
    Ordered / delivered / remaining per line plus the next batch number.

    Query params completion_mode and match_key override the configured
    defaults for this read.
    """
    try:
        progress = delivery_service.get_delivery_progress(
            transaction_id,
            completion_mode=request.args.get("completion_mode"),
            match_key=request.args.get("match_key"),
        )
    except DeliveryNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DeliveryError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    return jsonify(progress.to_dict()), 200


@transactions_bp.get("/<int:transaction_id>/deliveries")
@require_auth
def list_deliveries_route(transaction_id: int, ctx):
    try:
        batches = delivery_service.list_delivery_batches(transaction_id)
    except DeliveryNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": [b.to_dict(include_items=True) for b in batches], "count": len(batches)}), 200


@transactions_bp.post("/<int:transaction_id>/deliveries")
@require_auth
def create_delivery_route(transaction_id: int, ctx):
    """
    Record a delivery batch.

    Body: {"items": [{"transaction_item_id": int, "quantity": int}], "notes": str | null}

    Returns 400 without writing anything when a quantity is outside
    [1, remaining] or nothing is selected.
    """
    try:
        data = request.get_json(silent=True) or {}
        selections = _parse_selections(data.get("items"))
        result = delivery_service.create_delivery_batch(
            transaction_id,
            selections,
            notes=data.get("notes"),
            user_id=ctx.user_id,
        )
        return jsonify(result.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DeliveryNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DeliveryError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except CONCURRENCY_ERRORS:
        return _conflict()
    except Exception:
        current_app.logger.exception("Failed to create delivery batch")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.get("/<int:batch_id>")
@require_auth
def get_delivery_route(batch_id: int, ctx):
    try:
        batch = delivery_service.get_delivery_batch(batch_id)
    except DeliveryNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"batch": batch.to_dict(include_items=True)}), 200


@deliveries_bp.get("/<int:batch_id>/receipt")
@require_auth
def delivery_receipt_route(batch_id: int, ctx):
    try:
        receipt = receipts.build_delivery_receipt(batch_id)
    except DeliveryNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"receipt": receipt.to_dict()}), 200
