"""
Delivery Batch Service - partial shipments against a transaction.

WHY: Orders often leave the shop in several trips. Each trip is recorded as
a delivery batch listing how many units of each order line went out. The
order flips to "delivered" once the batches cover it.

DESIGN:
- Quantities are validated against what is still left to ship before
  anything is written.
- The batch header and all its items are committed together.
- The parent transaction row is locked (where the database supports it)
  and its version_id is bumped on every batch, so two clerks working from
  the same snapshot cannot both over-ship: the second commit fails the
  compare-and-swap, is retried from fresh state, and is then rejected by
  validation if nothing is left.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

from flask import current_app
from sqlalchemy.orm.attributes import flag_modified

from ..extensions import db
from ..models import Transaction, TransactionItem, DeliveryBatch, DeliveryBatchItem
from ..models.sales import DELIVERY_DELIVERED
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .reconciliation import (
    DeliveredItem,
    LineProgress,
    OrderedItem,
    ReconciliationCalculator,
    ReconciliationError,
)


class DeliveryError(Exception):
    """Raised for delivery batch errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class DeliveryNotFoundError(DeliveryError):
    """Raised when the transaction or batch does not exist."""


@dataclass
class DeliveryProgress:
    transaction_id: int
    transaction_number: str
    delivery_status: str
    lines: list[LineProgress]
    ordered_total: int
    delivered_total: int
    is_complete: bool
    batch_count: int
    next_batch_number: str
    completion_mode: str
    match_key: str
    inconsistencies: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "delivery_status": self.delivery_status,
            "lines": [line.to_dict() for line in self.lines],
            "ordered_total": self.ordered_total,
            "delivered_total": self.delivered_total,
            "is_complete": self.is_complete,
            "batch_count": self.batch_count,
            "next_batch_number": self.next_batch_number,
            "completion_mode": self.completion_mode,
            "match_key": self.match_key,
            "inconsistencies": self.inconsistencies,
        }


@dataclass
class DeliveryResult:
    batch: DeliveryBatch
    transaction: Transaction
    calculator: ReconciliationCalculator
    completed_now: bool

    def to_dict(self) -> dict:
        return {
            "batch": self.batch.to_dict(include_items=True),
            "delivery_status": self.transaction.delivery_status,
            "order_complete": self.calculator.is_complete(),
            "completed_now": self.completed_now,
            "lines": [line.to_dict() for line in self.calculator.progress()],
        }


def format_batch_number(now: datetime, existing_count: int) -> str:
    """DEL-<YYYYMMDD>-<nnn>; the sequence is per transaction, not global."""
    return f"DEL-{now:%Y%m%d}-{existing_count + 1:03d}"


def _options(completion_mode: str | None, match_key: str | None) -> tuple[str, str]:
    config = current_app.config
    return (
        completion_mode or config.get("DELIVERY_COMPLETION_MODE", "aggregate"),
        match_key or config.get("DELIVERY_MATCH_KEY", "line"),
    )


def to_ordered(item: TransactionItem) -> OrderedItem:
    return OrderedItem(line_id=item.id, product_name=item.product_name, quantity=item.quantity)


def to_delivered(item: DeliveryBatchItem) -> DeliveredItem:
    return DeliveredItem(line_id=item.transaction_item_id, product_name=item.product_name, quantity=item.quantity)


def _load(transaction_id: int, *, completion_mode: str, match_key: str, up_to_batch_id: int | None = None):
    """Fetch line items, batches and batch items, then build the calculator."""
    items = (
        db.session.query(TransactionItem)
        .filter_by(transaction_id=transaction_id)
        .order_by(TransactionItem.id.asc())
        .all()
    )
    batch_query = db.session.query(DeliveryBatch).filter_by(transaction_id=transaction_id)
    if up_to_batch_id is not None:
        batch_query = batch_query.filter(DeliveryBatch.id <= up_to_batch_id)
    batches = batch_query.order_by(DeliveryBatch.id.asc()).all()

    batch_items: list[DeliveryBatchItem] = []
    if batches:
        batch_items = (
            db.session.query(DeliveryBatchItem)
            .filter(DeliveryBatchItem.batch_id.in_([b.id for b in batches]))
            .all()
        )

    try:
        calculator = ReconciliationCalculator(
            [to_ordered(i) for i in items],
            [to_delivered(i) for i in batch_items],
            match_key=match_key,
            completion_mode=completion_mode,
        )
    except ReconciliationError as exc:
        raise DeliveryError(str(exc))
    return items, batches, calculator


def _report_inconsistencies(txn: Transaction, calculator: ReconciliationCalculator) -> list[dict]:
    found = [inc.to_dict() for inc in calculator.inconsistencies()]
    if found:
        current_app.logger.warning(
            "Transaction %s has more units delivered than ordered: %s",
            txn.transaction_number, found,
        )
    return found


def validate_selection(
    calculator: ReconciliationCalculator,
    items_by_id: Mapping[int, TransactionItem],
    selections: Mapping[int, int],
) -> list[tuple[TransactionItem, int]]:
    """
    Check a {line_id: quantity} selection against what is left to ship.

    Zero quantities are treated as "not selected". Every selected quantity
    must lie in [1, remaining]. Returns the (line, quantity) pairs to ship.
    """
    errors = []
    chosen: list[tuple[TransactionItem, int]] = []

    for line_id, quantity in selections.items():
        item = items_by_id.get(line_id)
        if item is None:
            errors.append({"transaction_item_id": line_id, "error": "Item is not part of this transaction"})
            continue
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            errors.append({"transaction_item_id": line_id, "error": "Quantity must be an integer"})
            continue
        if quantity == 0:
            continue

        remaining = calculator.remaining_quantity_for(to_ordered(item))
        if quantity < 1 or quantity > remaining:
            errors.append({
                "transaction_item_id": line_id,
                "product_name": item.product_name,
                "requested_quantity": quantity,
                "remaining_quantity": remaining,
                "error": f"Quantity must be between 1 and {remaining}" if remaining else "Nothing left to deliver",
            })
            continue
        chosen.append((item, quantity))

    if errors:
        raise DeliveryError("Invalid delivery quantities", details={"items": errors})
    if not chosen:
        raise DeliveryError("Select at least one item to deliver")

    # Lines sharing a product name can pass one by one yet overshoot together
    # when matching by name.
    before = {inc.key: inc.delivered for inc in calculator.inconsistencies()}
    after = calculator.with_additional(
        DeliveredItem(item.id, item.product_name, qty) for item, qty in chosen
    )
    overshoot = [
        inc.to_dict()
        for inc in after.inconsistencies()
        if inc.delivered > before.get(inc.key, inc.ordered)
    ]
    if overshoot:
        raise DeliveryError("Delivery would exceed ordered quantity", details={"items": overshoot})

    return chosen


def create_delivery_batch(
    transaction_id: int,
    selections: Mapping[int, int],
    *,
    notes: str | None = None,
    user_id: int | None = None,
    now: datetime | None = None,
    completion_mode: str | None = None,
    match_key: str | None = None,
) -> DeliveryResult:
    """
    Record a delivery batch and mark the order delivered when it completes.

    Args:
        transaction_id: Order being shipped
        selections: {transaction_item_id: quantity}
        notes: Free-text note printed on the delivery slip
        user_id: Staff member recording the batch

    Raises:
        DeliveryNotFoundError: Unknown transaction
        DeliveryError: Validation failed (nothing is written)
    """
    completion_mode, match_key = _options(completion_mode, match_key)

    def _op() -> DeliveryResult:
        txn = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
        if not txn:
            raise DeliveryNotFoundError("Transaction not found")

        items, batches, calculator = _load(transaction_id, completion_mode=completion_mode, match_key=match_key)
        chosen = validate_selection(calculator, {i.id: i for i in items}, selections)

        ts = now or utcnow()
        batch = DeliveryBatch(
            transaction_id=txn.id,
            batch_number=format_batch_number(ts, len(batches)),
            delivery_date=ts,
            notes=(notes or "").strip() or None,
            status="delivered",
            created_by_user_id=user_id,
            created_at=ts,
        )
        db.session.add(batch)
        db.session.flush()

        shipped = []
        for item, quantity in chosen:
            db.session.add(
                DeliveryBatchItem(
                    batch_id=batch.id,
                    transaction_item_id=item.id,
                    product_name=item.product_name,
                    quantity=quantity,
                    unit_price_cents=item.unit_price_cents,
                    subtotal_cents=item.unit_price_cents * quantity,
                    created_at=ts,
                )
            )
            shipped.append(DeliveredItem(item.id, item.product_name, quantity))

        updated = calculator.with_additional(shipped)
        completed_now = False
        if updated.is_complete() and txn.delivery_status != DELIVERY_DELIVERED:
            txn.delivery_status = DELIVERY_DELIVERED
            completed_now = True

        # Always touch the parent so version_id moves (compare-and-swap)
        txn.updated_at = ts
        flag_modified(txn, "updated_at")
        db.session.commit()
        return DeliveryResult(batch=batch, transaction=txn, calculator=updated, completed_now=completed_now)

    try:
        result = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Delivery batch %s recorded for transaction %s (%d units)",
        result.batch.batch_number,
        result.transaction.transaction_number,
        sum(q.quantity for q in result.batch.items),
    )
    if result.completed_now:
        current_app.logger.info("Transaction %s fully delivered", result.transaction.transaction_number)
    return result


def get_delivery_progress(
    transaction_id: int,
    *,
    completion_mode: str | None = None,
    match_key: str | None = None,
    now: datetime | None = None,
) -> DeliveryProgress:
    completion_mode, match_key = _options(completion_mode, match_key)

    txn = db.session.get(Transaction, transaction_id)
    if not txn:
        raise DeliveryNotFoundError("Transaction not found")

    _, batches, calculator = _load(transaction_id, completion_mode=completion_mode, match_key=match_key)
    totals = calculator.totals()
    return DeliveryProgress(
        transaction_id=txn.id,
        transaction_number=txn.transaction_number,
        delivery_status=txn.delivery_status,
        lines=calculator.progress(),
        ordered_total=totals["ordered"],
        delivered_total=totals["delivered"],
        is_complete=calculator.is_complete(),
        batch_count=len(batches),
        next_batch_number=format_batch_number(now or utcnow(), len(batches)),
        completion_mode=completion_mode,
        match_key=match_key,
        inconsistencies=_report_inconsistencies(txn, calculator),
    )


def list_delivery_batches(transaction_id: int) -> list[DeliveryBatch]:
    if not db.session.get(Transaction, transaction_id):
        raise DeliveryNotFoundError("Transaction not found")
    return (
        db.session.query(DeliveryBatch)
        .filter_by(transaction_id=transaction_id)
        .order_by(DeliveryBatch.id.asc())
        .all()
    )


def get_delivery_batch(batch_id: int) -> DeliveryBatch:
    batch = db.session.get(DeliveryBatch, batch_id)
    if not batch:
        raise DeliveryNotFoundError("Delivery batch not found")
    return batch


def progress_as_of_batch(batch: DeliveryBatch) -> ReconciliationCalculator:
    """Cumulative progress counting this batch and every earlier one."""
    completion_mode, match_key = _options(None, None)
    _, _, calculator = _load(
        batch.transaction_id,
        completion_mode=completion_mode,
        match_key=match_key,
        up_to_batch_id=batch.id,
    )
    return calculator
