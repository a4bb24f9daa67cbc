from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class DeliveryBatch(db.Model):
    """
    One physical delivery event against a transaction.

    Batches are append-only: a batch and its items are written together
    and never edited afterwards.
    """
    __tablename__ = "delivery_batches"
    __table_args__ = (
        db.Index("ix_delivery_batches_transaction_created", "transaction_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("pos_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Human-readable batch number (e.g., "DEL-20251210-002"); unique per transaction only
    batch_number = db.Column(db.String(64), nullable=False)
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="delivered")

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship(
        "Transaction",
        backref=db.backref(
            "delivery_batches",
            lazy=True,
            cascade="all, delete-orphan",
            order_by="DeliveryBatch.id",
        ),
    )
    items = db.relationship(
        "DeliveryBatchItem",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="DeliveryBatchItem.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "batch_number": self.batch_number,
            "delivery_date": to_utc_z(self.delivery_date),
            "notes": self.notes,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["total_quantity"] = sum(item.quantity for item in self.items)
            data["total_amount_cents"] = sum(item.subtotal_cents for item in self.items)
        return data


class DeliveryBatchItem(db.Model):
    """Quantity of one order line shipped in a batch."""
    __tablename__ = "delivery_batch_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_delivery_batch_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(
        db.Integer,
        db.ForeignKey("delivery_batches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_item_id = db.Column(
        db.Integer,
        db.ForeignKey("transaction_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    batch = db.relationship("DeliveryBatch", back_populates="items")
    transaction_item = db.relationship("TransactionItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "transaction_item_id": self.transaction_item_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "created_at": to_utc_z(self.created_at),
        }
