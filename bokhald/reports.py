"""
Dashboard aggregation over bookkeeping entries.

Pure functions over lists of Transaction-like objects (anything with
date / type / amount / vat_rate attributes), so they can be reused by the
dashboard, the reporting page and tests without a database.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Sequence

from .models import vat_on

PERIODS = ("day", "month", "year", "all")


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def normalize_period(period: str | None) -> str:
    return period if period in PERIODS else "all"


def filter_by_period(transactions: Iterable, period: str | None, anchor: date) -> list:
    """Entries on the same day / month / year as anchor; 'all' (or anything unknown) keeps everything."""
    period = normalize_period(period)
    anchor = _as_date(anchor)
    items = list(transactions)

    if period == "day":
        return [t for t in items if _as_date(t.date) == anchor]
    if period == "month":
        return [t for t in items if (_as_date(t.date).year, _as_date(t.date).month) == (anchor.year, anchor.month)]
    if period == "year":
        return [t for t in items if _as_date(t.date).year == anchor.year]
    return items


def summarize(transactions: Iterable) -> dict:
    """
    Totals for the dashboard cards.

    vat_owed / vat_paid are the VAT charged on sales / expenses (amounts are VAT-exclusive).
    """
    total_revenue = Decimal("0.00")
    total_expenses = Decimal("0.00")
    vat_owed = Decimal("0.00")
    vat_paid = Decimal("0.00")

    for t in transactions:
        amount = Decimal(str(t.amount))
        vat = vat_on(amount, t.vat_rate)
        if t.type == "sale":
            total_revenue += amount
            vat_owed += vat
        else:
            total_expenses += amount
            vat_paid += vat

    return {
        "total_revenue": total_revenue,
        "total_expenses": total_expenses,
        "net_profit": total_revenue - total_expenses,
        "vat_owed": vat_owed,
        "vat_paid": vat_paid,
    }


def monthly_profit_loss(transactions: Iterable) -> list[dict]:
    """Revenue and expenses per calendar month, oldest month first."""
    months: dict[str, dict] = {}
    for t in transactions:
        d = _as_date(t.date)
        key = f"{d.year:04d}-{d.month:02d}"
        row = months.setdefault(key, {"month": key, "revenue": Decimal("0.00"), "expenses": Decimal("0.00")})
        if t.type == "sale":
            row["revenue"] += Decimal(str(t.amount))
        else:
            row["expenses"] += Decimal(str(t.amount))
    return [months[k] for k in sorted(months)]


def recent(transactions: Sequence, limit: int = 5) -> list:
    """Newest entries first."""
    return sorted(transactions, key=lambda t: t.date, reverse=True)[:limit]
