from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Refund(db.Model):
    """
    Partial or full money-back against a transaction, paid by bank transfer.

    Immutable once created.
    """
    __tablename__ = "refunds"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_refunds_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("pos_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    refund_number = db.Column(db.String(32), nullable=False, unique=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)

    bank_name = db.Column(db.String(128), nullable=False)
    account_number = db.Column(db.String(64), nullable=False)
    account_name = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="completed")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship(
        "Transaction",
        backref=db.backref(
            "refunds",
            lazy=True,
            cascade="all, delete-orphan",
            order_by="Refund.id",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "refund_number": self.refund_number,
            "amount_cents": self.amount_cents,
            "reason": self.reason,
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "account_name": self.account_name,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class Invoice(db.Model):
    """
    Standalone billing document.

    Not linked to the transaction model; the reference number usually
    carries a transaction number but is free text.
    """
    __tablename__ = "invoices"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)
    reference_number = db.Column(db.String(64), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_code = db.Column(db.String(64), nullable=False)
    file_url = db.Column(db.Text, nullable=True)
    qr_code_data = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "reference_number": self.reference_number,
            "customer_name": self.customer_name,
            "customer_code": self.customer_code,
            "file_url": self.file_url,
            "qr_code_data": self.qr_code_data,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
