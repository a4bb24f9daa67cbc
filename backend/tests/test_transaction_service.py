"""
Checkout and the payment/delivery status state machine.
"""

import re
from datetime import datetime

import pytest

from tillbook.models import (
    DeliveryBatch,
    DeliveryBatchItem,
    Product,
    Refund,
    Transaction,
    TransactionItem,
)
from tillbook.services import promptpay, refund_service, transaction_service
from tillbook.services.delivery_service import create_delivery_batch
from tillbook.services.transaction_service import (
    InvalidTransitionError,
    TransactionError,
    TransactionNotFoundError,
    generate_transaction_number,
)


class TestCheckout:

    def test_totals_and_snapshots(self, db_session, order, products):
        assert order.total_amount_cents == 2250
        assert order.payment_status == "pending"
        assert order.delivery_status == "pending"
        assert [(i.product_name, i.quantity, i.subtotal_cents) for i in order.items] == [
            ("Widget", 10, 1000),
            ("Gadget", 5, 1250),
        ]

        # Later catalog edits do not rewrite the sale
        products["widget"].name = "Widget v2"
        products["widget"].price_cents = 120
        db_session.commit()
        db_session.expire_all()
        item = db_session.query(TransactionItem).filter_by(product_id=products["widget"].id).one()
        assert item.product_name == "Widget"
        assert item.unit_price_cents == 100

    def test_transaction_number_format(self):
        number = generate_transaction_number(datetime(2025, 1, 1))
        assert re.fullmatch(r"TXN1735689600000\d{1,3}", number)

    def test_qr_payload_carries_total(self, db_session, order):
        assert promptpay.verify_payload(order.qr_code_data)
        assert "540522.50" in order.qr_code_data

    def test_duplicate_products_are_merged(self, db_session, products):
        txn = transaction_service.create_transaction([
            {"product_id": products["widget"].id, "quantity": 2},
            {"product_id": products["widget"].id, "quantity": 3},
        ])
        assert len(txn.items) == 1
        assert txn.items[0].quantity == 5

    def test_empty_cart(self, db_session):
        with pytest.raises(TransactionError, match="Cart is empty"):
            transaction_service.create_transaction([])

    def test_inactive_and_unknown_products(self, db_session, products):
        with pytest.raises(TransactionError) as exc:
            transaction_service.create_transaction([
                {"product_id": products["retired"].id, "quantity": 1},
                {"product_id": 4242, "quantity": 1},
            ])
        assert sorted(exc.value.details["product_ids"]) == sorted([products["retired"].id, 4242])
        assert db_session.query(Transaction).count() == 0

    @pytest.mark.parametrize("quantity", [0, -2, 1.5, True, "3"])
    def test_bad_quantities(self, db_session, products, quantity):
        with pytest.raises(TransactionError):
            transaction_service.create_transaction([{"product_id": products["widget"].id, "quantity": quantity}])

    def test_unknown_customer(self, db_session, products):
        with pytest.raises(TransactionError, match="Customer not found"):
            transaction_service.create_transaction(
                [{"product_id": products["widget"].id, "quantity": 1}], customer_id=999
            )


class TestStatusTransitions:

    def test_pay(self, db_session, order):
        assert transaction_service.mark_paid(order.id).payment_status == "paid"

    def test_cancel(self, db_session, order):
        assert transaction_service.cancel(order.id).payment_status == "cancelled"

    def test_paid_order_cannot_be_cancelled(self, db_session, order):
        transaction_service.mark_paid(order.id)
        with pytest.raises(InvalidTransitionError):
            transaction_service.cancel(order.id)

    def test_cancelled_order_cannot_be_paid(self, db_session, order):
        transaction_service.cancel(order.id)
        with pytest.raises(InvalidTransitionError):
            transaction_service.mark_paid(order.id)

    def test_no_way_back_to_pending(self, db_session, order):
        transaction_service.mark_paid(order.id)
        with pytest.raises(InvalidTransitionError):
            transaction_service.set_status(order.id, payment_status="pending")

    def test_mark_delivered_twice(self, db_session, order):
        transaction_service.mark_delivered(order.id)
        with pytest.raises(InvalidTransitionError):
            transaction_service.mark_delivered(order.id)

    def test_statuses_are_independent(self, db_session, order):
        transaction_service.cancel(order.id)
        txn = transaction_service.mark_delivered(order.id)
        assert (txn.payment_status, txn.delivery_status) == ("cancelled", "delivered")

    def test_set_status_needs_exactly_one_field(self, db_session, order):
        with pytest.raises(TransactionError):
            transaction_service.set_status(order.id)
        with pytest.raises(TransactionError):
            transaction_service.set_status(order.id, payment_status="paid", delivery_status="delivered")

    def test_unknown_status_value(self, db_session, order):
        with pytest.raises(InvalidTransitionError):
            transaction_service.set_status(order.id, payment_status="refunded")

    def test_missing_transaction(self, db_session):
        with pytest.raises(TransactionNotFoundError):
            transaction_service.mark_paid(404)


class TestListingAndDeletion:

    def test_list_newest_first_with_children(self, db_session, products, order, line_ids):
        create_delivery_batch(order.id, {line_ids[0]: 1})
        refund_service.create_refund(
            order.id, amount_cents=100, reason="Damaged", bank_name="KBank", account_number="123-4-56789-0"
        )
        later = transaction_service.create_transaction(
            [{"product_id": products["gadget"].id, "quantity": 1}],
            now=datetime(2099, 1, 1),
        )

        rows = transaction_service.list_transactions()
        assert [r["id"] for r in rows] == [later.id, order.id]
        assert len(rows[1]["refunds"]) == 1
        assert len(rows[1]["delivery_batches"]) == 1
        assert rows[0]["refunds"] == []

        assert len(transaction_service.list_transactions(limit=1)) == 1
        assert [r["id"] for r in transaction_service.list_transactions(payment_status="paid")] == []

    def test_delete_cascades(self, db_session, order, line_ids):
        create_delivery_batch(order.id, {line_ids[0]: 2, line_ids[1]: 1})
        refund_service.create_refund(
            order.id, amount_cents=500, reason="Late", bank_name="SCB", account_number="111"
        )

        transaction_service.delete_transaction(order.id)

        assert db_session.query(Transaction).count() == 0
        assert db_session.query(TransactionItem).count() == 0
        assert db_session.query(DeliveryBatch).count() == 0
        assert db_session.query(DeliveryBatchItem).count() == 0
        assert db_session.query(Refund).count() == 0
        # Catalog is untouched
        assert db_session.query(Product).count() == 3

    def test_detail(self, db_session, order):
        data = transaction_service.transaction_detail(order)
        assert data["customer"]["name"] == "Somchai"
        assert data["refunded_cents"] == 0
        assert len(data["items"]) == 2
