"""
Refund Service

WHY: Customers are refunded by bank transfer, in part or in full. Each
refund is an immutable document tied to the original transaction.

RULES:
- Amount must be positive.
- The sum of all refunds on a transaction never exceeds its total.
- Reason, bank name and account number are required.
"""

from __future__ import annotations

import random
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Refund, Transaction
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


class RefundError(Exception):
    """Raised for refund operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class RefundNotFoundError(RefundError):
    """Raised when the transaction or refund does not exist."""


REFUND_STATUS_COMPLETED = "completed"


def generate_refund_number(now: datetime | None = None) -> str:
    """RF + YYMMDD + 4 random digits."""
    ts = now or utcnow()
    return f"RF{ts:%y%m%d}{random.randint(0, 9999):04d}"


def _unique_refund_number(now: datetime) -> str:
    for _ in range(10):
        number = generate_refund_number(now)
        if not db.session.query(Refund.id).filter_by(refund_number=number).first():
            return number
    raise RefundError("Could not allocate a refund number")


def refunded_total_cents(transaction_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(Refund.amount_cents), 0))
        .filter(Refund.transaction_id == transaction_id)
        .scalar()
    )
    return int(total or 0)


def _required(value: str | None, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise RefundError(f"{label} is required")
    return cleaned


def create_refund(
    transaction_id: int,
    *,
    amount_cents: int,
    reason: str,
    bank_name: str,
    account_number: str,
    account_name: str | None = None,
    now: datetime | None = None,
) -> Refund:
    """
    Record a refund against a transaction.

    Raises:
        RefundNotFoundError: Unknown transaction
        RefundError: Invalid amount or missing bank details
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise RefundError("amount_cents must be an integer")
    if amount_cents <= 0:
        raise RefundError("Refund amount must be positive")

    reason = _required(reason, "Reason")
    bank_name = _required(bank_name, "Bank name")
    account_number = _required(account_number, "Account number")
    account_name = (account_name or "").strip() or None

    def _op() -> Refund:
        txn = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
        if not txn:
            raise RefundNotFoundError("Transaction not found")

        already = refunded_total_cents(txn.id)
        refundable = txn.total_amount_cents - already
        if amount_cents > refundable:
            raise RefundError(
                "Refund amount exceeds the refundable balance",
                details={
                    "transaction_total_cents": txn.total_amount_cents,
                    "already_refunded_cents": already,
                    "refundable_cents": refundable,
                },
            )

        ts = now or utcnow()
        refund = Refund(
            transaction_id=txn.id,
            refund_number=_unique_refund_number(ts),
            amount_cents=amount_cents,
            reason=reason,
            bank_name=bank_name,
            account_number=account_number,
            account_name=account_name,
            status=REFUND_STATUS_COMPLETED,
            created_at=ts,
        )
        db.session.add(refund)
        txn.updated_at = ts
        db.session.commit()
        return refund

    try:
        refund = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Refund %s recorded: %d cents on transaction id=%d",
        refund.refund_number, refund.amount_cents, refund.transaction_id,
    )
    return refund


def list_refunds(transaction_id: int) -> list[Refund]:
    if not db.session.get(Transaction, transaction_id):
        raise RefundNotFoundError("Transaction not found")
    return db.session.query(Refund).filter_by(transaction_id=transaction_id).order_by(Refund.id.asc()).all()
