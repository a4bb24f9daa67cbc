import re
from datetime import datetime

import pytest

from tillbook.models import Refund
from tillbook.services import refund_service
from tillbook.services.refund_service import RefundError, RefundNotFoundError, create_refund


def _refund(txn_id, amount, **overrides):
    data = dict(reason="Damaged on arrival", bank_name="KBank", account_number="123-4-56789-0")
    data.update(overrides)
    return create_refund(txn_id, amount_cents=amount, **data)


def test_refund_number_format():
    number = refund_service.generate_refund_number(datetime(2025, 3, 7))
    assert re.fullmatch(r"RF250307\d{4}", number)


def test_partial_refunds_up_to_total(db_session, order):
    first = _refund(order.id, 1000, account_name="Somchai J.")
    assert first.status == "completed"
    assert first.account_name == "Somchai J."

    _refund(order.id, 1250)
    assert refund_service.refunded_total_cents(order.id) == 2250


def test_cumulative_refunds_cannot_exceed_total(db_session, order):
    _refund(order.id, 2000)
    with pytest.raises(RefundError) as exc:
        _refund(order.id, 251)
    assert exc.value.details["refundable_cents"] == 250
    assert db_session.query(Refund).count() == 1


@pytest.mark.parametrize("amount", [0, -5, 2251, 10.5, None])
def test_bad_amounts(db_session, order, amount):
    with pytest.raises(RefundError):
        _refund(order.id, amount)


@pytest.mark.parametrize("field", ["reason", "bank_name", "account_number"])
def test_required_fields(db_session, order, field):
    with pytest.raises(RefundError):
        _refund(order.id, 100, **{field: "   "})


def test_unknown_transaction(db_session):
    with pytest.raises(RefundNotFoundError):
        _refund(12345, 100)


def test_list_refunds(db_session, order):
    _refund(order.id, 100)
    _refund(order.id, 200)
    assert [r.amount_cents for r in refund_service.list_refunds(order.id)] == [100, 200]
