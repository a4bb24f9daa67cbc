# Overview: Service-layer operations for standalone invoices.

from __future__ import annotations

import time

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Invoice, Transaction
from ..validation import ModelValidationPolicy, ValidationError, ConflictError, validate_payload


INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={"invoice_number", "reference_number", "customer_name", "customer_code", "file_url", "qr_code_data"},
    required_on_create={"customer_name", "customer_code"},
)


class InvoiceError(Exception):
    """Raised for invoice operation errors."""


class InvoiceNotFoundError(InvoiceError):
    """Raised when an invoice or its source transaction does not exist."""


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def default_numbers() -> dict:
    """Form defaults: INV-/REF- followed by epoch milliseconds."""
    stamp = _epoch_ms()
    return {"invoice_number": f"INV-{stamp}", "reference_number": f"REF-{stamp}"}


def create_invoice(payload: dict) -> Invoice:
    patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_POLICY, partial=False)

    defaults = default_numbers()
    patch.setdefault("invoice_number", defaults["invoice_number"])
    patch.setdefault("reference_number", defaults["reference_number"])
    if not patch.get("invoice_number"):
        raise ValidationError("invoice_number cannot be blank")
    # The QR on an invoice links to the uploaded document
    if "qr_code_data" not in patch:
        patch["qr_code_data"] = patch.get("file_url")

    if db.session.query(Invoice.id).filter_by(invoice_number=patch["invoice_number"]).first():
        raise ConflictError(f"Invoice number {patch['invoice_number']} already exists")

    invoice = Invoice(**patch)
    db.session.add(invoice)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Invoice number {patch['invoice_number']} already exists")
    return invoice


def list_invoices(*, search: str | None = None, limit: int = 100) -> list[Invoice]:
    query = db.session.query(Invoice)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Invoice.invoice_number.ilike(like),
                Invoice.reference_number.ilike(like),
                Invoice.customer_name.ilike(like),
                Invoice.customer_code.ilike(like),
            )
        )
    limit = max(1, min(limit, 500))
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(limit).all()


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise InvoiceNotFoundError("Invoice not found")
    return invoice


def delete_invoice(invoice_id: int) -> None:
    invoice = get_invoice(invoice_id)
    db.session.delete(invoice)
    db.session.commit()


def prefill_from_transaction(transaction_number: str) -> dict:
    """
    Suggested form values for invoicing an existing sale.

    The customer code is the customer's phone, or their id when no phone
    is on file.
    """
    txn = db.session.query(Transaction).filter_by(transaction_number=transaction_number).first()
    if not txn:
        raise InvoiceNotFoundError("Transaction not found")

    data = default_numbers()
    data["reference_number"] = txn.transaction_number
    data["customer_name"] = None
    data["customer_code"] = None
    data["customer_rank"] = "standard"
    if txn.customer:
        data["customer_name"] = txn.customer.name
        data["customer_code"] = txn.customer.phone or str(txn.customer.id)
        data["customer_rank"] = txn.customer.rank
    return data
