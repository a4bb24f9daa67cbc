"""
Delivery reconciliation calculator.

Pure value-level tests; no app or database required.
"""

import pytest

from tillbook.services.reconciliation import (
    DeliveredItem,
    OrderedItem,
    ReconciliationCalculator,
    ReconciliationError,
    is_order_complete,
    is_order_complete_strict,
)


ORDER = (
    OrderedItem(line_id=1, product_name="A", quantity=10),
    OrderedItem(line_id=2, product_name="B", quantity=5),
)


def shipped(*rows):
    return [DeliveredItem(line_id, name, qty) for line_id, name, qty in rows]


class TestRemainingQuantities:

    def test_nothing_shipped_everything_remains(self):
        calc = ReconciliationCalculator(ORDER, [])
        assert [row.remaining for row in calc.progress()] == [10, 5]
        assert not calc.is_complete()

    def test_remaining_sums_across_batches(self):
        calc = ReconciliationCalculator(ORDER, shipped((1, "A", 3), (1, "A", 4), (2, "B", 5)))
        progress = {row.line_id: row for row in calc.progress()}
        assert progress[1].delivered == 7
        assert progress[1].remaining == 3
        assert progress[2].remaining == 0

    def test_remaining_never_negative_and_overshoot_is_reported(self):
        calc = ReconciliationCalculator(ORDER, shipped((1, "A", 12)))
        assert calc.remaining_quantity_for(ORDER[0]) == 0

        found = calc.inconsistencies()
        assert len(found) == 1
        assert found[0].key == 1
        assert found[0].excess == 2

    def test_delivered_quantity_for_is_case_sensitive(self):
        calc = ReconciliationCalculator(ORDER, shipped((None, "a", 4), (None, "A", 1)))
        assert calc.delivered_quantity_for("A") == 1
        assert calc.delivered_quantity_for("a") == 4
        assert calc.delivered_quantity_for("missing") == 0

    def test_line_matching_ignores_later_renames(self):
        # Shipment recorded against line 1 under an older product name
        calc = ReconciliationCalculator(ORDER, shipped((1, "A (old name)", 10)))
        assert calc.remaining_quantity_for(ORDER[0]) == 0

    def test_name_matching_uses_denormalized_name(self):
        calc = ReconciliationCalculator(ORDER, shipped((None, "A", 6)), match_key="name")
        assert calc.remaining_quantity_for(ORDER[0]) == 4
        assert calc.remaining_quantity_for(ORDER[1]) == 5


class TestCompletion:

    def test_aggregate_complete_when_totals_match(self):
        delivered = shipped((1, "A", 10), (2, "B", 5))
        assert is_order_complete(ORDER, delivered)
        assert ReconciliationCalculator(ORDER, delivered).is_complete()

    def test_aggregate_rule_lets_one_product_mask_another(self):
        # 15 units of A and none of B still totals 15 ordered units
        delivered = shipped((1, "A", 15), (2, "B", 0))
        assert is_order_complete(ORDER, delivered)
        assert ReconciliationCalculator(ORDER, delivered).is_complete()

    def test_strict_rule_requires_every_line(self):
        delivered = shipped((1, "A", 15), (2, "B", 0))
        assert not is_order_complete_strict(ORDER, delivered)
        assert not ReconciliationCalculator(ORDER, delivered, completion_mode="strict").is_complete()

        full = shipped((1, "A", 10), (2, "B", 5))
        assert ReconciliationCalculator(ORDER, full, completion_mode="strict").is_complete()

    def test_strict_by_name_sums_lines_sharing_a_name(self):
        order = (
            OrderedItem(1, "A", 5),
            OrderedItem(2, "A", 3),
        )
        partial = shipped((None, "A", 6))
        assert not is_order_complete_strict(order, partial, match_key="name")
        assert is_order_complete_strict(order, shipped((None, "A", 8)), match_key="name")

    def test_empty_order_is_complete(self):
        assert ReconciliationCalculator([], []).is_complete()


class TestCalculatorApi:

    def test_with_additional_leaves_original_untouched(self):
        calc = ReconciliationCalculator(ORDER, shipped((1, "A", 4)))
        after = calc.with_additional(shipped((1, "A", 6), (2, "B", 5)))

        assert calc.totals() == {"ordered": 15, "delivered": 4}
        assert after.totals() == {"ordered": 15, "delivered": 15}
        assert after.is_complete()
        assert not calc.is_complete()

    @pytest.mark.parametrize("kwargs", [{"match_key": "sku"}, {"completion_mode": "mostly"}])
    def test_unknown_options_rejected(self, kwargs):
        with pytest.raises(ReconciliationError):
            ReconciliationCalculator(ORDER, [], **kwargs)

    def test_progress_to_dict(self):
        row = ReconciliationCalculator(ORDER, shipped((2, "B", 2))).progress()[1]
        assert row.to_dict() == {
            "line_id": 2,
            "product_name": "B",
            "ordered": 5,
            "delivered": 2,
            "remaining": 3,
        }
