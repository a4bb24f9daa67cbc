"""
Checkout and order status service.

WHY: A transaction is the parent of everything else (line items, delivery
batches, refunds). Its total is fixed at checkout and its two status flags
only ever move forward.

LIFECYCLE:
- payment_status: pending -> paid | pending -> cancelled
- delivery_status: pending -> delivered (staff action, or automatically
  once delivery batches cover the order; see delivery_service)
"""

from __future__ import annotations

import random
from datetime import datetime, timezone

from flask import current_app

from ..extensions import db
from ..models import Transaction, TransactionItem, Product, Customer, DeliveryBatch, Refund
from ..models.sales import (
    PAYMENT_PENDING,
    PAYMENT_PAID,
    PAYMENT_CANCELLED,
    DELIVERY_PENDING,
    DELIVERY_DELIVERED,
)
from ..time_utils import utcnow
from . import promptpay
from .concurrency import lock_for_update, run_with_retry


class TransactionError(Exception):
    """Raised for transaction operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class TransactionNotFoundError(TransactionError):
    """Raised when the transaction does not exist."""


class InvalidTransitionError(TransactionError):
    """Raised when a status change is not allowed from the current state."""


PAYMENT_TRANSITIONS = {
    PAYMENT_PENDING: {PAYMENT_PAID, PAYMENT_CANCELLED},
}
DELIVERY_TRANSITIONS = {
    DELIVERY_PENDING: {DELIVERY_DELIVERED},
}


def generate_transaction_number(now: datetime | None = None) -> str:
    """TXN + epoch milliseconds + 0-999 random suffix."""
    ts = (now or utcnow()).replace(tzinfo=timezone.utc)
    return f"TXN{int(ts.timestamp() * 1000)}{random.randint(0, 999)}"


def _unique_transaction_number(now: datetime) -> str:
    for _ in range(5):
        number = generate_transaction_number(now)
        exists = db.session.query(Transaction.id).filter_by(transaction_number=number).first()
        if not exists:
            return number
    raise TransactionError("Could not allocate a transaction number")


def _merge_cart(lines: list[dict]) -> list[tuple[int, int]]:
    """Validate cart lines and merge repeated products, keeping first-seen order."""
    merged: dict[int, int] = {}
    errors = []
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            errors.append({"line": index, "error": "line must be an object"})
            continue
        product_id = line.get("product_id")
        quantity = line.get("quantity")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            errors.append({"line": index, "error": "product_id must be an integer"})
            continue
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            errors.append({"line": index, "error": "quantity must be a positive integer"})
            continue
        merged[product_id] = merged.get(product_id, 0) + quantity
    if errors:
        raise TransactionError("Invalid cart lines", details={"lines": errors})
    return list(merged.items())


def create_transaction(
    lines: list[dict],
    *,
    customer_id: int | None = None,
    now: datetime | None = None,
) -> Transaction:
    """
    Check out a cart.

    Each line is {"product_id": int, "quantity": int}. Product name and
    price are copied onto the line items so later product edits do not
    change the sale.
    """
    if not lines:
        raise TransactionError("Cart is empty")

    cart = _merge_cart(lines)

    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_([pid for pid, _ in cart])).all()
    }
    unavailable = [pid for pid, _ in cart if pid not in products or not products[pid].is_active]
    if unavailable:
        raise TransactionError(
            "Some products are not available",
            details={"product_ids": unavailable},
        )

    if customer_id is not None and not db.session.get(Customer, customer_id):
        raise TransactionError("Customer not found")

    ts = now or utcnow()
    items = []
    for product_id, quantity in cart:
        product = products[product_id]
        items.append(
            TransactionItem(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price_cents=product.price_cents,
                subtotal_cents=product.price_cents * quantity,
                created_at=ts,
            )
        )

    total = sum(item.subtotal_cents for item in items)
    txn = Transaction(
        transaction_number=_unique_transaction_number(ts),
        total_amount_cents=total,
        payment_status=PAYMENT_PENDING,
        delivery_status=DELIVERY_PENDING,
        customer_id=customer_id,
        qr_code_data=promptpay.build_payload(current_app.config["PROMPTPAY_ID"], total),
        created_at=ts,
        updated_at=ts,
        items=items,
    )

    db.session.add(txn)
    db.session.commit()

    current_app.logger.info(
        "Transaction %s created: %d lines, total_cents=%d",
        txn.transaction_number, len(items), total,
    )
    return txn


def get_transaction(transaction_id: int) -> Transaction:
    txn = db.session.get(Transaction, transaction_id)
    if not txn:
        raise TransactionNotFoundError("Transaction not found")
    return txn


def _change_status(transaction_id: int, field: str, new_status: str, transitions: dict) -> Transaction:
    def _op():
        txn = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
        if not txn:
            raise TransactionNotFoundError("Transaction not found")

        current = getattr(txn, field)
        if new_status not in transitions.get(current, set()):
            raise InvalidTransitionError(
                f"Cannot change {field} from {current} to {new_status}",
                details={"current": current, "requested": new_status},
            )

        setattr(txn, field, new_status)
        txn.updated_at = utcnow()
        db.session.commit()
        return txn

    try:
        txn = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Transaction %s %s -> %s", txn.transaction_number, field, new_status)
    return txn


def mark_paid(transaction_id: int) -> Transaction:
    return _change_status(transaction_id, "payment_status", PAYMENT_PAID, PAYMENT_TRANSITIONS)


def cancel(transaction_id: int) -> Transaction:
    return _change_status(transaction_id, "payment_status", PAYMENT_CANCELLED, PAYMENT_TRANSITIONS)


def mark_delivered(transaction_id: int) -> Transaction:
    return _change_status(transaction_id, "delivery_status", DELIVERY_DELIVERED, DELIVERY_TRANSITIONS)


def set_status(transaction_id: int, *, payment_status: str | None = None, delivery_status: str | None = None) -> Transaction:
    """Apply a status change request from the API."""
    if (payment_status is None) == (delivery_status is None):
        raise TransactionError("Provide exactly one of payment_status or delivery_status")
    if payment_status is not None:
        return _change_status(transaction_id, "payment_status", payment_status, PAYMENT_TRANSITIONS)
    return _change_status(transaction_id, "delivery_status", delivery_status, DELIVERY_TRANSITIONS)


def transaction_detail(txn: Transaction) -> dict:
    data = txn.to_dict()
    data["items"] = [item.to_dict() for item in txn.items]
    data["customer"] = txn.customer.to_dict() if txn.customer else None
    data["refunds"] = [refund.to_dict() for refund in txn.refunds]
    data["refunded_cents"] = sum(refund.amount_cents for refund in txn.refunds)
    data["delivery_batches"] = [batch.to_dict(include_items=True) for batch in txn.delivery_batches]
    return data


def list_transactions(
    *,
    limit: int = 50,
    payment_status: str | None = None,
    delivery_status: str | None = None,
) -> list[dict]:
    """Newest first, with refunds and delivery batches attached."""
    query = db.session.query(Transaction)
    if payment_status:
        query = query.filter(Transaction.payment_status == payment_status)
    if delivery_status:
        query = query.filter(Transaction.delivery_status == delivery_status)

    limit = max(1, min(limit, 200))
    rows = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()
    if not rows:
        return []

    ids = [txn.id for txn in rows]
    refunds: dict[int, list[dict]] = {}
    for refund in db.session.query(Refund).filter(Refund.transaction_id.in_(ids)).order_by(Refund.id).all():
        refunds.setdefault(refund.transaction_id, []).append(refund.to_dict())
    batches: dict[int, list[dict]] = {}
    for batch in db.session.query(DeliveryBatch).filter(DeliveryBatch.transaction_id.in_(ids)).order_by(DeliveryBatch.id).all():
        batches.setdefault(batch.transaction_id, []).append(batch.to_dict())

    result = []
    for txn in rows:
        data = txn.to_dict()
        data["refunds"] = refunds.get(txn.id, [])
        data["delivery_batches"] = batches.get(txn.id, [])
        result.append(data)
    return result


def delete_transaction(transaction_id: int) -> None:
    """Hard delete; items, delivery batches and refunds go with it."""
    txn = get_transaction(transaction_id)
    number = txn.transaction_number
    db.session.delete(txn)
    db.session.commit()
    current_app.logger.info("Transaction %s deleted", number)
