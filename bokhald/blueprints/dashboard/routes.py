"""
Dashboard & reporting routes.

- /dashboard : totals, VAT owed/paid, monthly profit & loss and recent entries
- /reporting : printable list of entries for the selected period (reporting role)

Both pages share the same period filter from the query string:
    ?period=day|month|year|all&date=YYYY-MM-DD
"""

from __future__ import annotations

from datetime import date

from flask import Blueprint, render_template, request
from flask_login import current_user

from ... import flash_error_param
from ...models import Transaction
from ...reports import PERIODS, filter_by_period, monthly_profit_loss, normalize_period, recent, summarize
from ...security import app_user_required, reporting_required
from ...utils import parse_date

dashboard_bp = Blueprint("dashboard", __name__)


def _period_filter() -> tuple[str, date]:
    period = normalize_period(request.args.get("period"))
    anchor = parse_date(request.args.get("date")) or date.today()
    return period, anchor


def _filtered_transactions(period: str, anchor: date) -> list[Transaction]:
    transactions = (
        Transaction.query.filter_by(user_id=current_user.id)
        .order_by(Transaction.date.desc(), Transaction.id.desc())
        .all()
    )
    return filter_by_period(transactions, period, anchor)


@dashboard_bp.route("/dashboard")
@app_user_required
def index():
    flash_error_param()
    period, anchor = _period_filter()
    transactions = _filtered_transactions(period, anchor)

    return render_template(
        "dashboard/index.html",
        stats=summarize(transactions),
        monthly=monthly_profit_loss(transactions),
        recent_transactions=recent(transactions),
        periods=PERIODS,
        period=period,
        anchor=anchor,
    )


@dashboard_bp.route("/reporting")
@app_user_required
@reporting_required
def reporting():
    period, anchor = _period_filter()
    transactions = _filtered_transactions(period, anchor)

    return render_template(
        "dashboard/reporting.html",
        transactions=transactions,
        stats=summarize(transactions),
        periods=PERIODS,
        period=period,
        anchor=anchor,
    )
