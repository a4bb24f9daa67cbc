"""
Delivery reconciliation: ordered quantities versus quantities shipped
across any number of delivery batches.

Everything here is pure. Callers fetch the rows, build the value types,
and decide what to write based on the answers.

Matching:
- "line" (default): a shipped quantity counts against the order line it
  was recorded for. Renaming a product after the sale cannot break it.
- "name": shipped quantities are matched by denormalized product name,
  for rows that predate line ids.

Completion:
- "aggregate": complete once total shipped units >= total ordered units.
  Over-shipping one product can mask a shortfall on another.
- "strict": complete once every line (or every product name, when
  matching by name) is fully shipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


MATCH_BY_LINE = "line"
MATCH_BY_NAME = "name"
MATCH_KEYS = (MATCH_BY_LINE, MATCH_BY_NAME)

COMPLETION_AGGREGATE = "aggregate"
COMPLETION_STRICT = "strict"
COMPLETION_MODES = (COMPLETION_AGGREGATE, COMPLETION_STRICT)


class ReconciliationError(ValueError):
    """Raised for an unknown match key or completion mode."""


@dataclass(frozen=True)
class OrderedItem:
    line_id: int | None
    product_name: str
    quantity: int


@dataclass(frozen=True)
class DeliveredItem:
    line_id: int | None
    product_name: str
    quantity: int


@dataclass(frozen=True)
class LineProgress:
    line_id: int | None
    product_name: str
    ordered: int
    delivered: int
    remaining: int

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "product_name": self.product_name,
            "ordered": self.ordered,
            "delivered": self.delivered,
            "remaining": self.remaining,
        }


@dataclass(frozen=True)
class Inconsistency:
    """More units recorded as shipped than were ordered."""
    key: int | str | None
    product_name: str
    ordered: int
    delivered: int

    @property
    def excess(self) -> int:
        return self.delivered - self.ordered

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "product_name": self.product_name,
            "ordered": self.ordered,
            "delivered": self.delivered,
            "excess": self.excess,
        }


def ordered_total(ordered: Iterable[OrderedItem]) -> int:
    return sum(item.quantity for item in ordered)


def delivered_total(delivered: Iterable[DeliveredItem]) -> int:
    return sum(item.quantity for item in delivered)


def is_order_complete(ordered: Iterable[OrderedItem], delivered: Iterable[DeliveredItem]) -> bool:
    """Aggregate rule: total shipped units cover total ordered units."""
    return ordered_total(ordered) <= delivered_total(delivered)


def is_order_complete_strict(
    ordered: Iterable[OrderedItem],
    delivered: Iterable[DeliveredItem],
    *,
    match_key: str = MATCH_BY_LINE,
) -> bool:
    """Per-line rule: nothing is left to ship on any line."""
    ordered = tuple(ordered)
    calc = ReconciliationCalculator(ordered, delivered, match_key=match_key)
    if match_key == MATCH_BY_NAME:
        return all(
            calc.delivered_quantity_for(name) >= qty
            for name, qty in _ordered_by_name(ordered).items()
        )
    return all(row.remaining == 0 for row in calc.progress())


def _ordered_by_name(ordered: Iterable[OrderedItem]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for item in ordered:
        totals[item.product_name] = totals.get(item.product_name, 0) + item.quantity
    return totals


def _check_option(value: str, allowed: tuple[str, ...], label: str) -> str:
    if value not in allowed:
        raise ReconciliationError(f"{label} must be one of: {', '.join(allowed)}")
    return value


class ReconciliationCalculator:
    """Shipping progress for one transaction."""

    def __init__(
        self,
        ordered: Iterable[OrderedItem],
        delivered: Iterable[DeliveredItem],
        *,
        match_key: str = MATCH_BY_LINE,
        completion_mode: str = COMPLETION_AGGREGATE,
    ):
        self.match_key = _check_option(match_key, MATCH_KEYS, "match_key")
        self.completion_mode = _check_option(completion_mode, COMPLETION_MODES, "completion_mode")
        self._ordered = tuple(ordered)
        self._delivered = tuple(delivered)

        self._delivered_by_name: dict[str, int] = {}
        self._delivered_by_line: dict[int, int] = {}
        for item in self._delivered:
            self._delivered_by_name[item.product_name] = (
                self._delivered_by_name.get(item.product_name, 0) + item.quantity
            )
            if item.line_id is not None:
                self._delivered_by_line[item.line_id] = (
                    self._delivered_by_line.get(item.line_id, 0) + item.quantity
                )

    @property
    def ordered(self) -> tuple[OrderedItem, ...]:
        return self._ordered

    @property
    def delivered(self) -> tuple[DeliveredItem, ...]:
        return self._delivered

    def delivered_quantity_for(self, product_name: str) -> int:
        """Units shipped under this exact (case-sensitive) product name."""
        return self._delivered_by_name.get(product_name, 0)

    def delivered_quantity_for_item(self, item: OrderedItem) -> int:
        if self.match_key == MATCH_BY_LINE:
            return self._delivered_by_line.get(item.line_id, 0)
        return self.delivered_quantity_for(item.product_name)

    def remaining_quantity_for(self, item: OrderedItem) -> int:
        """Units still to ship, never below zero; see inconsistencies() for overshoot."""
        return max(item.quantity - self.delivered_quantity_for_item(item), 0)

    def progress(self) -> list[LineProgress]:
        rows = []
        for item in self._ordered:
            rows.append(
                LineProgress(
                    line_id=item.line_id,
                    product_name=item.product_name,
                    ordered=item.quantity,
                    delivered=self.delivered_quantity_for_item(item),
                    remaining=self.remaining_quantity_for(item),
                )
            )
        return rows

    def inconsistencies(self) -> list[Inconsistency]:
        """Lines (or product names, when matching by name) shipped beyond the order."""
        found = []
        if self.match_key == MATCH_BY_LINE:
            for item in self._ordered:
                shipped = self.delivered_quantity_for_item(item)
                if shipped > item.quantity:
                    found.append(Inconsistency(item.line_id, item.product_name, item.quantity, shipped))
            return found

        for name, qty in _ordered_by_name(self._ordered).items():
            shipped = self.delivered_quantity_for(name)
            if shipped > qty:
                found.append(Inconsistency(name, name, qty, shipped))
        return found

    def is_complete(self) -> bool:
        if self.completion_mode == COMPLETION_STRICT:
            return is_order_complete_strict(self._ordered, self._delivered, match_key=self.match_key)
        return is_order_complete(self._ordered, self._delivered)

    def with_additional(self, delivered: Iterable[DeliveredItem]) -> "ReconciliationCalculator":
        """A new calculator that also counts the given shipments."""
        return ReconciliationCalculator(
            self._ordered,
            self._delivered + tuple(delivered),
            match_key=self.match_key,
            completion_mode=self.completion_mode,
        )

    def totals(self) -> dict:
        return {
            "ordered": ordered_total(self._ordered),
            "delivered": delivered_total(self._delivered),
        }
