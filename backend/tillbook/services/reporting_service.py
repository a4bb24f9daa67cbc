# Overview: Sales analytics for the reports page (period buckets, summary, rankings).

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Transaction, TransactionItem
from ..models.sales import PAYMENT_PAID
from ..time_utils import utcnow, to_utc_z


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


MAX_PERIODS = 366
MAX_RANKING = 100


def _check_periods(value: int, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1 or value > MAX_PERIODS:
        raise ReportError(f"{label} must be between 1 and {MAX_PERIODS}")
    return value


def _start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def _add_months(dt: datetime, months: int) -> datetime:
    index = dt.year * 12 + (dt.month - 1) + months
    return dt.replace(year=index // 12, month=index % 12 + 1, day=1)


def _bucket(periods: list[tuple[str, datetime, datetime]]) -> list[dict]:
    """Sum transaction totals into [start, end) windows, oldest first."""
    if not periods:
        return []
    earliest = periods[0][1]
    latest = periods[-1][2]
    rows = (
        db.session.query(Transaction.created_at, Transaction.total_amount_cents)
        .filter(Transaction.created_at >= earliest, Transaction.created_at < latest)
        .all()
    )

    result = []
    for label, start, end in periods:
        amount = 0
        count = 0
        for created_at, total in rows:
            if start <= created_at < end:
                amount += total
                count += 1
        result.append({
            "period": label,
            "start": to_utc_z(start),
            "end": to_utc_z(end),
            "amount_cents": amount,
            "count": count,
        })
    return result


def daily_sales(days: int = 7, *, now: datetime | None = None) -> list[dict]:
    days = _check_periods(days, "days")
    today = _start_of_day(now or utcnow())
    periods = []
    for offset in range(days - 1, -1, -1):
        start = today - timedelta(days=offset)
        periods.append((f"{start:%Y-%m-%d}", start, start + timedelta(days=1)))
    return _bucket(periods)


def weekly_sales(weeks: int = 8, *, now: datetime | None = None) -> list[dict]:
    """Weeks start on Monday; the current, partial week is the last entry."""
    weeks = _check_periods(weeks, "weeks")
    today = _start_of_day(now or utcnow())
    this_week = today - timedelta(days=today.weekday())
    periods = []
    for offset in range(weeks - 1, -1, -1):
        start = this_week - timedelta(weeks=offset)
        periods.append((f"{start:%Y-%m-%d}", start, start + timedelta(weeks=1)))
    return _bucket(periods)


def monthly_sales(months: int = 12, *, now: datetime | None = None) -> list[dict]:
    months = _check_periods(months, "months")
    this_month = _start_of_day(now or utcnow()).replace(day=1)
    periods = []
    for offset in range(months - 1, -1, -1):
        start = _add_months(this_month, -offset)
        periods.append((f"{start:%Y-%m}", start, _add_months(start, 1)))
    return _bucket(periods)


def sales_summary() -> dict:
    """
    Totals across every transaction.

    Cancelled orders are included in the sales figures; paid_orders
    counts only payment_status == "paid".
    """
    total, count = db.session.query(
        func.coalesce(func.sum(Transaction.total_amount_cents), 0),
        func.count(Transaction.id),
    ).one()
    paid = db.session.query(func.count(Transaction.id)).filter(Transaction.payment_status == PAYMENT_PAID).scalar()

    total = int(total or 0)
    count = int(count or 0)
    return {
        "total_sales_cents": total,
        "total_orders": count,
        "paid_orders": int(paid or 0),
        "average_order_cents": total // count if count else 0,
    }


def _check_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1 or limit > MAX_RANKING:
        raise ReportError(f"limit must be between 1 and {MAX_RANKING}")
    return limit


def top_products(limit: int = 10) -> list[dict]:
    """Best sellers by revenue; line items are grouped by their sold product name."""
    limit = _check_limit(limit)
    revenue = func.sum(TransactionItem.subtotal_cents)
    rows = (
        db.session.query(TransactionItem.product_name, func.sum(TransactionItem.quantity), revenue)
        .group_by(TransactionItem.product_name)
        .order_by(revenue.desc(), TransactionItem.product_name.asc())
        .limit(limit)
        .all()
    )
    return [
        {"product_name": name, "quantity": int(quantity), "revenue_cents": int(total)}
        for name, quantity, total in rows
    ]


def top_customers(limit: int = 10) -> list[dict]:
    """Customers by total spent. Walk-in sales (no customer) are left out."""
    limit = _check_limit(limit)
    spent = func.sum(Transaction.total_amount_cents)
    rows = (
        db.session.query(Customer.id, Customer.name, func.count(Transaction.id), spent)
        .join(Transaction, Transaction.customer_id == Customer.id)
        .group_by(Customer.id, Customer.name)
        .order_by(spent.desc(), Customer.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"customer_id": cid, "name": name, "total_orders": int(orders), "total_spent_cents": int(total)}
        for cid, name, orders, total in rows
    ]
