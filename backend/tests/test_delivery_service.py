"""
Delivery batch service: validation, numbering, completion and locking.
"""

from datetime import datetime

import pytest
from sqlalchemy import func
from sqlalchemy.orm.exc import StaleDataError

from tillbook import create_app
from tillbook.extensions import db
from tillbook.models import DeliveryBatch, DeliveryBatchItem, Product, Transaction
from tillbook.services import delivery_service, transaction_service
from tillbook.services.concurrency import run_with_retry
from tillbook.services.delivery_service import (
    DeliveryError,
    DeliveryNotFoundError,
    create_delivery_batch,
    format_batch_number,
    get_delivery_progress,
)


NOW = datetime(2025, 12, 10, 9, 30)


def _batch_count(db_session):
    return db_session.query(DeliveryBatch).count(), db_session.query(DeliveryBatchItem).count()


class TestBatchNumbers:

    def test_format(self):
        assert format_batch_number(NOW, 0) == "DEL-20251210-001"
        assert format_batch_number(NOW, 11) == "DEL-20251210-012"

    def test_sequence_is_per_transaction(self, db_session, order, line_ids, products):
        widget_line, _ = line_ids
        first = create_delivery_batch(order.id, {widget_line: 2}, now=NOW)
        second = create_delivery_batch(order.id, {widget_line: 3}, now=NOW)
        assert first.batch.batch_number == "DEL-20251210-001"
        assert second.batch.batch_number == "DEL-20251210-002"

        other = transaction_service.create_transaction([{"product_id": products["widget"].id, "quantity": 1}])
        other_line = other.items[0].id
        assert create_delivery_batch(other.id, {other_line: 1}, now=NOW).batch.batch_number == "DEL-20251210-001"

    def test_progress_reports_next_number(self, db_session, order, line_ids):
        create_delivery_batch(order.id, {line_ids[0]: 1}, now=NOW)
        progress = get_delivery_progress(order.id, now=NOW)
        assert progress.batch_count == 1
        assert progress.next_batch_number == "DEL-20251210-002"


class TestSelectionValidation:

    @pytest.mark.parametrize("quantity", [11, -1])
    def test_out_of_range_quantity_writes_nothing(self, db_session, order, line_ids, quantity):
        widget_line, _ = line_ids
        with pytest.raises(DeliveryError) as exc:
            create_delivery_batch(order.id, {widget_line: quantity}, now=NOW)

        assert exc.value.details["items"][0]["remaining_quantity"] == 10
        assert _batch_count(db_session) == (0, 0)

    def test_empty_selection_rejected(self, db_session, order, line_ids):
        with pytest.raises(DeliveryError, match="Select at least one item"):
            create_delivery_batch(order.id, {}, now=NOW)
        with pytest.raises(DeliveryError, match="Select at least one item"):
            create_delivery_batch(order.id, {line_ids[0]: 0, line_ids[1]: 0}, now=NOW)
        assert _batch_count(db_session) == (0, 0)

    def test_zero_lines_are_skipped(self, db_session, order, line_ids):
        widget_line, gadget_line = line_ids
        result = create_delivery_batch(order.id, {widget_line: 4, gadget_line: 0}, now=NOW)
        assert [i.transaction_item_id for i in result.batch.items] == [widget_line]

    def test_one_bad_line_rejects_whole_batch(self, db_session, order, line_ids):
        widget_line, gadget_line = line_ids
        with pytest.raises(DeliveryError):
            create_delivery_batch(order.id, {widget_line: 2, gadget_line: 6}, now=NOW)
        assert _batch_count(db_session) == (0, 0)

    def test_upper_bound_shrinks_after_each_batch(self, db_session, order, line_ids):
        widget_line, _ = line_ids
        create_delivery_batch(order.id, {widget_line: 7}, now=NOW)
        with pytest.raises(DeliveryError):
            create_delivery_batch(order.id, {widget_line: 4}, now=NOW)
        create_delivery_batch(order.id, {widget_line: 3}, now=NOW)
        assert _batch_count(db_session) == (2, 2)

    def test_foreign_line_rejected(self, db_session, order, products):
        other = transaction_service.create_transaction([{"product_id": products["gadget"].id, "quantity": 1}])
        with pytest.raises(DeliveryError):
            create_delivery_batch(order.id, {other.items[0].id: 1}, now=NOW)

    def test_non_integer_quantity_rejected(self, db_session, order, line_ids):
        with pytest.raises(DeliveryError):
            create_delivery_batch(order.id, {line_ids[0]: "3"}, now=NOW)

    def test_unknown_transaction(self, db_session):
        with pytest.raises(DeliveryNotFoundError):
            create_delivery_batch(999, {1: 1}, now=NOW)


class TestBatchContents:

    def test_items_snapshot_price_and_subtotal(self, db_session, order, line_ids, staff_user):
        widget_line, gadget_line = line_ids
        result = create_delivery_batch(
            order.id, {widget_line: 3, gadget_line: 2}, notes="  side door  ", user_id=staff_user.id, now=NOW
        )
        batch = result.batch
        assert batch.notes == "side door"
        assert batch.created_by_user_id == staff_user.id
        assert batch.status == "delivered"

        data = batch.to_dict(include_items=True)
        assert data["total_quantity"] == 5
        assert data["total_amount_cents"] == 3 * 100 + 2 * 250

    def test_delivery_bumps_transaction_version(self, db_session, order, line_ids):
        before = db_session.get(Transaction, order.id).version_id
        create_delivery_batch(order.id, {line_ids[0]: 1}, now=NOW)
        db_session.expire_all()
        assert db_session.get(Transaction, order.id).version_id == before + 1


class TestCompletion:

    def test_order_flips_to_delivered_when_covered(self, db_session, order, line_ids):
        widget_line, gadget_line = line_ids

        first = create_delivery_batch(order.id, {widget_line: 10}, now=NOW)
        assert not first.completed_now
        assert first.transaction.delivery_status == "pending"

        second = create_delivery_batch(order.id, {gadget_line: 5}, now=NOW)
        assert second.completed_now
        assert second.transaction.delivery_status == "delivered"
        assert second.to_dict()["order_complete"] is True

    def test_completion_is_idempotent_when_already_delivered(self, db_session, order, line_ids):
        transaction_service.mark_delivered(order.id)
        widget_line, gadget_line = line_ids

        result = create_delivery_batch(order.id, {widget_line: 10, gadget_line: 5}, now=NOW)
        assert result.calculator.is_complete()
        assert not result.completed_now
        assert result.transaction.delivery_status == "delivered"

    def test_strict_mode(self, db_session, order, line_ids):
        widget_line, gadget_line = line_ids
        partial = create_delivery_batch(order.id, {widget_line: 10}, now=NOW, completion_mode="strict")
        assert not partial.completed_now

        rest = create_delivery_batch(order.id, {gadget_line: 5}, now=NOW, completion_mode="strict")
        assert rest.completed_now

    def test_nothing_left_after_completion(self, db_session, order, line_ids):
        widget_line, gadget_line = line_ids
        create_delivery_batch(order.id, {widget_line: 10, gadget_line: 5}, now=NOW)
        with pytest.raises(DeliveryError) as exc:
            create_delivery_batch(order.id, {widget_line: 1}, now=NOW)
        assert exc.value.details["items"][0]["error"] == "Nothing left to deliver"


class TestProgress:

    def test_progress_lines(self, db_session, order, line_ids):
        widget_line, gadget_line = line_ids
        create_delivery_batch(order.id, {widget_line: 4}, now=NOW)

        progress = get_delivery_progress(order.id, now=NOW).to_dict()
        assert progress["ordered_total"] == 15
        assert progress["delivered_total"] == 4
        assert progress["is_complete"] is False
        assert progress["inconsistencies"] == []
        lines = {row["line_id"]: row for row in progress["lines"]}
        assert lines[widget_line]["remaining"] == 6
        assert lines[gadget_line]["remaining"] == 5

    def test_legacy_overshoot_is_reported(self, db_session, order, line_ids):
        widget_line, _ = line_ids
        # Rows written before validation existed
        batch = DeliveryBatch(transaction_id=order.id, batch_number="DEL-20240101-001", status="delivered")
        db_session.add(batch)
        db_session.flush()
        db_session.add(DeliveryBatchItem(
            batch_id=batch.id, transaction_item_id=widget_line, product_name="Widget",
            quantity=12, unit_price_cents=100, subtotal_cents=1200,
        ))
        db_session.commit()

        progress = get_delivery_progress(order.id)
        assert progress.inconsistencies[0]["excess"] == 2
        assert progress.lines[0].remaining == 0

    def test_receipt_progress_is_cumulative_as_of_batch(self, db_session, order, line_ids):
        widget_line, _ = line_ids
        first = create_delivery_batch(order.id, {widget_line: 2}, now=NOW)
        create_delivery_batch(order.id, {widget_line: 3}, now=NOW)

        calc = delivery_service.progress_as_of_batch(delivery_service.get_delivery_batch(first.batch.id))
        assert calc.totals()["delivered"] == 2


class TestRetry:

    def test_stale_write_is_retried(self, db_session):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("version mismatch")
            return "ok"

        assert run_with_retry(_op, backoff_base=0) == "ok"
        assert len(calls) == 2

    def test_retries_exhausted_reraises(self, db_session):
        def _op():
            raise StaleDataError("version mismatch")

        with pytest.raises(StaleDataError):
            run_with_retry(_op, attempts=2, backoff_base=0)


@pytest.fixture
def file_app(tmp_path):
    """A second app on a file-backed SQLite database, so two sessions see separate connections."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'tillbook.sqlite3'}",
        'STORAGE_ROOT': str(tmp_path / 'storage'),
        'BCRYPT_ROUNDS': 4,
        'PROMPTPAY_ID': '0812345678',
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def five_widgets(file_app):
    widget = Product(name="Widget", price_cents=100)
    db.session.add(widget)
    db.session.commit()
    txn = transaction_service.create_transaction([{"product_id": widget.id, "quantity": 5}])
    return txn.id, txn.items[0].id


def _clerk_ships_first(monkeypatch, app, transaction_id, line_id, *, after_read):
    """
    Patch _load so another clerk commits a 5-unit batch from their own app
    context, either just before or just after this request reads progress.
    """
    original = delivery_service._load
    fired = []

    def other_clerk():
        fired.append(True)
        with app.app_context():
            create_delivery_batch(transaction_id, {line_id: 5}, now=NOW)

    def _load(txn_id, **kwargs):
        if not fired and not after_read:
            other_clerk()
        loaded = original(txn_id, **kwargs)
        if not fired and after_read:
            other_clerk()
        return loaded

    monkeypatch.setattr(delivery_service, "_load", _load)


def _delivered_total():
    return db.session.query(func.coalesce(func.sum(DeliveryBatchItem.quantity), 0)).scalar()


class TestConcurrentBatches:

    def test_batch_committed_before_read_rejects_second(self, monkeypatch, five_widgets, file_app):
        txn_id, line_id = five_widgets
        _clerk_ships_first(monkeypatch, file_app, txn_id, line_id, after_read=False)

        with pytest.raises(DeliveryError, match="Invalid delivery quantities"):
            create_delivery_batch(txn_id, {line_id: 5}, now=NOW)

        db.session.expire_all()
        assert _delivered_total() == 5
        assert db.session.query(DeliveryBatch).count() == 1

    def test_stale_snapshot_fails_version_check_then_validation(self, monkeypatch, five_widgets, file_app):
        txn_id, line_id = five_widgets
        _clerk_ships_first(monkeypatch, file_app, txn_id, line_id, after_read=True)

        with pytest.raises(DeliveryError, match="Invalid delivery quantities"):
            create_delivery_batch(txn_id, {line_id: 5}, now=NOW)

        db.session.expire_all()
        assert _delivered_total() == 5
        assert db.session.query(DeliveryBatch).count() == 1
        txn = db.session.get(Transaction, txn_id)
        assert txn.delivery_status == "delivered"
        assert txn.version_id == 2


class TestAtomicity:

    def test_failed_item_insert_leaves_no_header(self, monkeypatch, db_session, order, line_ids):
        widget_line, _ = line_ids
        version_before = order.version_id

        def broken_item(**kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(delivery_service, "DeliveryBatchItem", broken_item)

        with pytest.raises(RuntimeError):
            create_delivery_batch(order.id, {widget_line: 10}, now=NOW)

        db_session.expire_all()
        assert db_session.query(DeliveryBatch).count() == 0
        assert order.delivery_status == "pending"
        assert order.version_id == version_before
