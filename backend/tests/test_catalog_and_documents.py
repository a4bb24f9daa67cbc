"""
Customers, products, invoices, business settings and receipts.
"""

import re
from datetime import datetime

import pytest

from tillbook.models import Invoice
from tillbook.services import (
    customer_service,
    invoice_service,
    products_service,
    receipts,
    refund_service,
    settings_service,
)
from tillbook.services.delivery_service import create_delivery_batch
from tillbook.services.invoice_service import InvoiceNotFoundError
from tillbook.services.receipts import ReceiptNotFoundError
from tillbook.validation import ConflictError, ValidationError


class TestCustomers:

    def test_create_normalizes_rank(self, db_session):
        c = customer_service.create_customer({"name": "Malee", "rank": "VIP", "email": "malee@example.com"})
        assert c.rank == "vip"

    def test_default_rank(self, db_session):
        assert customer_service.create_customer({"name": "Niran"}).rank == "standard"

    @pytest.mark.parametrize("payload", [
        {},
        {"name": ""},
        {"name": "X", "rank": "diamond"},
        {"name": "X", "email": "not-an-email"},
        {"name": "X", "loyalty_points": 5},
    ])
    def test_invalid(self, db_session, payload):
        with pytest.raises(ValidationError):
            customer_service.create_customer(payload)

    def test_delete_keeps_transactions(self, db_session, order, customer):
        customer_service.delete_customer(customer.id)
        db_session.expire_all()
        assert order.customer_id is None
        assert order.total_amount_cents == 2250

    def test_search(self, db_session, customer):
        assert [c.id for c in customer_service.list_customers(search="0811")] == [customer.id]
        assert customer_service.list_customers(search="nobody") == []


class TestProducts:

    def test_inactive_hidden_unless_requested(self, db_session, products):
        names = [p.name for p in products_service.list_products()]
        assert names == ["Gadget", "Widget"]
        assert "Retired" in [p.name for p in products_service.list_products(include_inactive=True)]

    def test_price_must_be_non_negative(self, db_session):
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "Bad", "price_cents": -1})
        with pytest.raises(ValidationError):
            products_service.create_product({"name": "Bad", "price_cents": 9.99})

    def test_deactivate(self, db_session, products):
        products_service.update_product(products["widget"].id, {"is_active": False})
        assert "Widget" not in [p.name for p in products_service.list_products()]

    def test_sold_product_cannot_be_hard_deleted(self, db_session, order, products):
        with pytest.raises(ConflictError):
            products_service.delete_product(products["widget"].id)
        products_service.delete_product(products["retired"].id)


class TestInvoices:

    def test_defaults_fill_numbers_and_qr(self, db_session):
        invoice = invoice_service.create_invoice({
            "customer_name": "Acme Co.",
            "customer_code": "C-001",
            "file_url": "/api/files/1700000000000-abc.pdf",
        })
        assert re.fullmatch(r"INV-\d{13}", invoice.invoice_number)
        assert re.fullmatch(r"REF-\d{13}", invoice.reference_number)
        assert invoice.qr_code_data == invoice.file_url

    def test_customer_fields_required(self, db_session):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice({"customer_name": "Acme Co."})

    def test_duplicate_number_conflicts(self, db_session):
        payload = {"invoice_number": "INV-1", "customer_name": "A", "customer_code": "1"}
        invoice_service.create_invoice(payload)
        with pytest.raises(ConflictError):
            invoice_service.create_invoice(payload)
        assert db_session.query(Invoice).count() == 1

    def test_prefill_from_transaction(self, db_session, order):
        data = invoice_service.prefill_from_transaction(order.transaction_number)
        assert data["reference_number"] == order.transaction_number
        assert data["customer_name"] == "Somchai"
        assert data["customer_code"] == "0811111111"
        assert data["customer_rank"] == "gold"

    def test_prefill_unknown_transaction(self, db_session):
        with pytest.raises(InvoiceNotFoundError):
            invoice_service.prefill_from_transaction("TXN0")

    def test_delete(self, db_session):
        invoice = invoice_service.create_invoice({"customer_name": "A", "customer_code": "1"})
        invoice_service.delete_invoice(invoice.id)
        with pytest.raises(InvoiceNotFoundError):
            invoice_service.get_invoice(invoice.id)


class TestSettings:

    def test_created_on_first_read(self, db_session):
        settings = settings_service.get_business_settings()
        assert settings.business_name == "Your Business Name"
        assert settings_service.get_business_settings().id == settings.id

    def test_update_and_clear(self, db_session):
        settings_service.update_business_settings({"business_name": "Tillbook Trading", "contact_phone": "021234567"})
        settings = settings_service.update_business_settings({"contact_phone": ""})
        assert settings.business_name == "Tillbook Trading"
        assert settings.contact_phone is None


class TestReceipts:

    def test_payment_receipt(self, db_session, order):
        refund_service.create_refund(order.id, amount_cents=250, reason="Dent", bank_name="SCB", account_number="1")
        receipt = receipts.build_payment_receipt(order.id).to_dict()

        assert receipt["business"]["business_name"] == "Your Business Name"
        assert receipt["customer"]["rank"] == "gold"
        assert receipt["total_amount_cents"] == 2250
        assert receipt["refunded_cents"] == 250
        assert [line["product_name"] for line in receipt["lines"]] == ["Widget", "Gadget"]

    def test_delivery_receipt_progress(self, db_session, order, line_ids):
        widget_line, gadget_line = line_ids
        first = create_delivery_batch(order.id, {widget_line: 4}, now=datetime(2025, 12, 10))
        create_delivery_batch(order.id, {widget_line: 6, gadget_line: 5}, now=datetime(2025, 12, 11))

        receipt = receipts.build_delivery_receipt(first.batch.id).to_dict()
        assert receipt["batch_number"] == "DEL-20251210-001"
        assert receipt["batch_total_cents"] == 400
        assert receipt["order_complete"] is False
        widget = receipt["progress"][0]
        assert (widget["delivered"], widget["remaining"]) == (4, 6)

    def test_refund_receipt(self, db_session, order):
        refund = refund_service.create_refund(
            order.id, amount_cents=500, reason="Late", bank_name="KBank", account_number="9", account_name="S."
        )
        receipt = receipts.build_refund_receipt(refund.id).to_dict()
        assert receipt["refund_number"] == refund.refund_number
        assert receipt["transaction_number"] == order.transaction_number
        assert receipt["refund_amount_cents"] == 500

    def test_missing(self, db_session):
        with pytest.raises(ReceiptNotFoundError):
            receipts.build_payment_receipt(1)
        with pytest.raises(ReceiptNotFoundError):
            receipts.build_refund_receipt(1)
