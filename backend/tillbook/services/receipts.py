"""
Read-only view models for payment, delivery and refund receipts.

Renderers (image/PDF export happens client-side) get one explicit shape
per document instead of a transaction row with extra keys bolted on.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime

from ..extensions import db
from ..models import Transaction, Refund, BusinessSettings
from ..time_utils import to_utc_z
from . import settings_service
from .delivery_service import get_delivery_batch, progress_as_of_batch


class ReceiptNotFoundError(Exception):
    """Raised when the document behind a receipt does not exist."""


@dataclass(frozen=True)
class BusinessHeader:
    business_name: str
    logo_url: str | None
    signature_url: str | None
    contact_phone: str | None

    @classmethod
    def from_settings(cls, settings: BusinessSettings) -> "BusinessHeader":
        return cls(
            business_name=settings.business_name,
            logo_url=settings.logo_url,
            signature_url=settings.signature_url,
            contact_phone=settings.contact_phone,
        )


@dataclass(frozen=True)
class CustomerBlock:
    name: str
    rank: str
    phone: str | None
    address: str | None


@dataclass(frozen=True)
class ReceiptLine:
    product_name: str
    quantity: int
    unit_price_cents: int
    subtotal_cents: int


@dataclass(frozen=True)
class ProgressLine:
    product_name: str
    ordered: int
    delivered: int
    remaining: int


@dataclass
class PaymentReceipt:
    business: BusinessHeader
    transaction_number: str
    issued_at: str | None
    customer: CustomerBlock | None
    lines: list[ReceiptLine]
    total_amount_cents: int
    refunded_cents: int
    payment_status: str
    delivery_status: str
    qr_code_data: str | None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DeliveryReceipt:
    business: BusinessHeader
    transaction_number: str
    batch_number: str
    delivered_at: str | None
    notes: str | None
    customer: CustomerBlock | None
    lines: list[ReceiptLine]
    batch_total_cents: int
    progress: list[ProgressLine] = field(default_factory=list)
    order_complete: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RefundReceipt:
    business: BusinessHeader
    refund_number: str
    transaction_number: str
    issued_at: str | None
    customer: CustomerBlock | None
    transaction_total_cents: int
    refund_amount_cents: int
    reason: str
    bank_name: str
    account_number: str
    account_name: str | None

    def to_dict(self) -> dict:
        return asdict(self)


def _customer_block(txn: Transaction) -> CustomerBlock | None:
    customer = txn.customer
    if customer is None:
        return None
    return CustomerBlock(
        name=customer.name,
        rank=customer.rank,
        phone=customer.phone,
        address=customer.address,
    )


def _iso(dt: datetime | None) -> str | None:
    return to_utc_z(dt) if dt else None


def build_payment_receipt(transaction_id: int) -> PaymentReceipt:
    txn = db.session.get(Transaction, transaction_id)
    if not txn:
        raise ReceiptNotFoundError("Transaction not found")

    return PaymentReceipt(
        business=BusinessHeader.from_settings(settings_service.get_business_settings()),
        transaction_number=txn.transaction_number,
        issued_at=_iso(txn.created_at),
        customer=_customer_block(txn),
        lines=[
            ReceiptLine(item.product_name, item.quantity, item.unit_price_cents, item.subtotal_cents)
            for item in txn.items
        ],
        total_amount_cents=txn.total_amount_cents,
        refunded_cents=sum(refund.amount_cents for refund in txn.refunds),
        payment_status=txn.payment_status,
        delivery_status=txn.delivery_status,
        qr_code_data=txn.qr_code_data,
    )


def build_delivery_receipt(batch_id: int) -> DeliveryReceipt:
    batch = get_delivery_batch(batch_id)
    txn = batch.transaction
    calculator = progress_as_of_batch(batch)

    return DeliveryReceipt(
        business=BusinessHeader.from_settings(settings_service.get_business_settings()),
        transaction_number=txn.transaction_number,
        batch_number=batch.batch_number,
        delivered_at=_iso(batch.delivery_date),
        notes=batch.notes,
        customer=_customer_block(txn),
        lines=[
            ReceiptLine(item.product_name, item.quantity, item.unit_price_cents, item.subtotal_cents)
            for item in batch.items
        ],
        batch_total_cents=sum(item.subtotal_cents for item in batch.items),
        progress=[
            ProgressLine(row.product_name, row.ordered, row.delivered, row.remaining)
            for row in calculator.progress()
        ],
        order_complete=calculator.is_complete(),
    )


def build_refund_receipt(refund_id: int) -> RefundReceipt:
    refund = db.session.get(Refund, refund_id)
    if not refund:
        raise ReceiptNotFoundError("Refund not found")
    txn = refund.transaction

    return RefundReceipt(
        business=BusinessHeader.from_settings(settings_service.get_business_settings()),
        refund_number=refund.refund_number,
        transaction_number=txn.transaction_number,
        issued_at=_iso(refund.created_at),
        customer=_customer_block(txn),
        transaction_total_cents=txn.total_amount_cents,
        refund_amount_cents=refund.amount_cents,
        reason=refund.reason,
        bank_name=refund.bank_name,
        account_number=refund.account_number,
        account_name=refund.account_name,
    )
