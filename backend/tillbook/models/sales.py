from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_CANCELLED = "cancelled"
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_CANCELLED)

DELIVERY_PENDING = "pending"
DELIVERY_DELIVERED = "delivered"
DELIVERY_STATUSES = (DELIVERY_PENDING, DELIVERY_DELIVERED)


class Transaction(db.Model):
    """
    A single sale (order) created at checkout.

    The total is fixed at creation. Payment and delivery status are two
    independent one-way flags. version_id is bumped on every UPDATE and
    checked by the ORM, so two writers that read the same snapshot cannot
    both commit.
    """
    __tablename__ = "pos_transactions"
    __table_args__ = (
        db.CheckConstraint("total_amount_cents >= 0", name="ck_pos_transactions_total_non_negative"),
        db.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'cancelled')",
            name="ck_pos_transactions_payment_status",
        ),
        db.CheckConstraint(
            "delivery_status IN ('pending', 'delivered')",
            name="ck_pos_transactions_delivery_status",
        ),
        db.Index("ix_pos_transactions_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_number = db.Column(db.String(64), nullable=False, unique=True)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING)
    delivery_status = db.Column(db.String(16), nullable=False, default=DELIVERY_PENDING)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    qr_code_data = db.Column(db.Text, nullable=True)
    payment_image_url = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("transactions", lazy=True))
    items = db.relationship(
        "TransactionItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "total_amount_cents": self.total_amount_cents,
            "payment_status": self.payment_status,
            "delivery_status": self.delivery_status,
            "customer_id": self.customer_id,
            "qr_code_data": self.qr_code_data,
            "payment_image_url": self.payment_image_url,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class TransactionItem(db.Model):
    """Line item on a transaction. Product name and price are denormalized at sale time."""
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_items_quantity_positive"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_transaction_items_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("pos_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship("Transaction", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "created_at": to_utc_z(self.created_at),
        }
