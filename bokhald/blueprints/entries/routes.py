"""
bokhald/blueprints/entries/routes.py

Bookkeeping entries (sales and expenses) of the signed-in tenant.

Includes:
- list with description search and period filter
- create / edit / delete

IMPORTANT:
- Every query is scoped to current_user; foreign ids answer 404.
- Audit is recorded in the same transaction as the data change.
  Pattern: db.session.flush() -> log_action(...) -> db.session.commit()
"""

from __future__ import annotations

from datetime import date, datetime

from flask import Blueprint, flash, redirect, render_template, request, url_for
from flask_login import current_user

from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import PAYMENT_METHODS, TRANSACTION_TYPES, VAT_RATES, Transaction
from ...reports import PERIODS, filter_by_period, normalize_period
from ...security import app_user_required, owned_or_404
from ...utils import form_str, parse_date, parse_decimal
from ...validation import validate_entry

entries_bp = Blueprint("entries", __name__, url_prefix="/entries")


def _read_entry_form() -> tuple[dict, list[str]]:
    """Parse and validate the entry form. Returns (values, errors)."""
    values = {
        "description": form_str("description"),
        "category": form_str("category"),
        "amount": parse_decimal(request.form.get("amount")),
        "type": form_str("type"),
        "vat_rate": parse_decimal(request.form.get("vat_rate")),
        "payment_method": form_str("payment_method"),
    }
    errors = validate_entry(
        values["description"],
        values["category"],
        values["amount"],
        values["type"],
        values["vat_rate"],
        values["payment_method"],
    )

    raw_date = form_str("date")
    entry_date = parse_date(raw_date)
    if raw_date and entry_date is None:
        errors.append("Date must be in the format YYYY-MM-DD.")
    values["date"] = entry_date
    return values, errors


def _form_context(entry: Transaction | None) -> dict:
    return {
        "entry": entry,
        "types": TRANSACTION_TYPES,
        "payment_methods": PAYMENT_METHODS,
        "vat_rates": VAT_RATES,
    }


# ---------------------------------------------------------------------
# List
# ---------------------------------------------------------------------
@entries_bp.route("/")
@app_user_required
def list_entries():
    search = (request.args.get("q") or "").strip()
    period = normalize_period(request.args.get("period"))
    anchor = parse_date(request.args.get("date")) or date.today()

    q = Transaction.query.filter_by(user_id=current_user.id)
    if search:
        q = q.filter(Transaction.description.ilike(f"%{search}%"))

    entries = q.order_by(Transaction.date.desc(), Transaction.id.desc()).all()
    entries = filter_by_period(entries, period, anchor)

    return render_template(
        "entries/list.html",
        entries=entries,
        search=search,
        periods=PERIODS,
        period=period,
        anchor=anchor,
    )


# ---------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------
@entries_bp.route("/new", methods=["GET", "POST"])
@app_user_required
def create_entry():
    if request.method == "POST":
        values, errors = _read_entry_form()
        if errors:
            for message in errors:
                flash(message, "danger")
            return render_template("entries/form.html", form=request.form, **_form_context(None)), 400

        entry_date = values.pop("date")
        entry = Transaction(
            user_id=current_user.id,
            date=datetime.combine(entry_date, datetime.min.time()) if entry_date else datetime.utcnow(),
            **values,
        )

        db.session.add(entry)
        db.session.flush()
        log_action("entry_created", entity=entry, after=serialize_model(entry))
        db.session.commit()

        flash("Entry added.", "success")
        return redirect(url_for("entries.list_entries"))

    return render_template("entries/form.html", form={}, **_form_context(None))


# ---------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------
@entries_bp.route("/<int:entry_id>/edit", methods=["GET", "POST"])
@app_user_required
def edit_entry(entry_id: int):
    entry = owned_or_404(Transaction, entry_id)

    if request.method == "POST":
        values, errors = _read_entry_form()
        if errors:
            for message in errors:
                flash(message, "danger")
            return render_template("entries/form.html", form=request.form, **_form_context(entry)), 400

        before_snapshot = serialize_model(entry)

        # Blank date keeps the stored one
        entry_date = values.pop("date")
        if entry_date:
            entry.date = datetime.combine(entry_date, datetime.min.time())
        for field, value in values.items():
            setattr(entry, field, value)

        db.session.flush()
        log_action("entry_updated", entity=entry, before=before_snapshot, after=serialize_model(entry))
        db.session.commit()

        flash("Entry updated.", "success")
        return redirect(url_for("entries.list_entries"))

    return render_template("entries/form.html", form={}, **_form_context(entry))


# ---------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------
@entries_bp.route("/<int:entry_id>/delete", methods=["POST"])
@app_user_required
def delete_entry(entry_id: int):
    entry = owned_or_404(Transaction, entry_id)
    before_snapshot = serialize_model(entry)

    log_action("entry_deleted", entity=entry, before=before_snapshot)
    db.session.delete(entry)
    db.session.commit()

    flash("Entry deleted.", "success")
    return redirect(url_for("entries.list_entries"))
