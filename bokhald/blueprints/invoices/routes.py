"""
bokhald/blueprints/invoices/routes.py

Invoice routes

Includes:
- list (newest invoice number first, optional status filter)
- create: numbered from the tenant's CompanySettings counters
- detail: printable invoice with company header and VAT breakdown
- status change (paid / unpaid / overdue) and delete

IMPORTANT:
- Invoice number allocation, the invoice rows and the counter update are one
  database transaction. The settings row is locked while allocating and the
  (user_id, invoice_number) unique constraint rejects duplicates.
"""

from __future__ import annotations

from datetime import date, timedelta

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import (
    INVOICE_STATUSES,
    VAT_RATES,
    CompanySettings,
    Invoice,
    InvoiceItem,
    InvoiceNumberingError,
)
from ...security import app_user_required, owned_or_404
from ...utils import form_str, parse_date, parse_decimal, safe_next_url
from ...validation import validate_invoice

invoices_bp = Blueprint("invoices", __name__, url_prefix="/invoices")


# ---------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------
def _read_items() -> list[dict]:
    """
    Items arrive as parallel lists (item_description[], item_quantity[], ...).
    Rows left completely empty are ignored.
    """
    descriptions = request.form.getlist("item_description")
    quantities = request.form.getlist("item_quantity")
    unit_prices = request.form.getlist("item_unit_price")
    vat_rates = request.form.getlist("item_vat_rate")

    items = []
    for idx, description in enumerate(descriptions):
        quantity_raw = quantities[idx] if idx < len(quantities) else ""
        price_raw = unit_prices[idx] if idx < len(unit_prices) else ""
        vat_raw = vat_rates[idx] if idx < len(vat_rates) else ""

        if not description.strip() and not price_raw.strip():
            continue

        items.append(
            {
                "description": description.strip(),
                "quantity": parse_decimal(quantity_raw),
                "unit_price": parse_decimal(price_raw),
                "vat_rate": parse_decimal(vat_raw),
            }
        )
    return items


def _new_form_defaults(settings: CompanySettings) -> dict:
    today = date.today()
    return {
        "issue_date": today.isoformat(),
        "due_date": (today + timedelta(days=current_app.config.get("INVOICE_DUE_DAYS", 14))).isoformat(),
        "default_vat_rate": int(settings.vat_rate) if settings.vat_rate is not None else 24,
    }


def _render_new(settings: CompanySettings, status: int = 200):
    return (
        render_template(
            "invoices/new.html",
            defaults=_new_form_defaults(settings),
            vat_rates=VAT_RATES,
            form=request.form if request.method == "POST" else {},
        ),
        status,
    )


# ---------------------------------------------------------------------
# List
# ---------------------------------------------------------------------
@invoices_bp.route("/")
@app_user_required
def list_invoices():
    status_filter = (request.args.get("status") or "").strip()

    q = Invoice.query.filter_by(user_id=current_user.id)
    if status_filter in INVOICE_STATUSES:
        q = q.filter(Invoice.status == status_filter)

    invoices = sorted(q.all(), key=lambda inv: inv.sort_key, reverse=True)

    return render_template(
        "invoices/list.html",
        invoices=invoices,
        statuses=INVOICE_STATUSES,
        status_filter=status_filter,
    )


# ---------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------
@invoices_bp.route("/new", methods=["GET", "POST"])
@app_user_required
def create_invoice():
    if request.method == "GET":
        settings = CompanySettings.for_user(current_user.id)
        db.session.commit()
        return _render_new(settings)

    client_name = form_str("client_name")
    client_address = form_str("client_address")
    client_kennitala = form_str("client_kennitala")
    issue_date = parse_date(request.form.get("issue_date"))
    due_date = parse_date(request.form.get("due_date"))
    items = _read_items()

    errors = validate_invoice(client_name, client_address, client_kennitala, issue_date, due_date, items)
    if errors:
        for message in errors:
            flash(message, "danger")
        return _render_new(CompanySettings.for_user(current_user.id), 400)

    settings = CompanySettings.for_user(current_user.id, lock=True)
    try:
        invoice_number = settings.allocate_invoice_number(issue_date.year)
    except InvoiceNumberingError as exc:
        db.session.rollback()
        flash(str(exc), "danger")
        return _render_new(settings, 400)

    invoice = Invoice(
        user_id=current_user.id,
        invoice_number=invoice_number,
        client_name=client_name,
        client_address=client_address,
        client_kennitala=client_kennitala,
        issue_date=issue_date,
        due_date=due_date,
        status="unpaid",
    )
    for line_no, item in enumerate(items, start=1):
        invoice.items.append(InvoiceItem(line_no=line_no, **item))
    invoice.recalc_totals()

    db.session.add(invoice)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning(
            "Invoice number %s already taken for user %s", invoice_number, current_user.id
        )
        flash(
            f"Invoice number {invoice_number} is already in use. Check the numbering in settings.",
            "danger",
        )
        return redirect(url_for("invoices.create_invoice"))

    log_action(
        "invoice_created",
        {"invoice_number": invoice_number, "total": str(invoice.total)},
        entity=invoice,
    )
    db.session.commit()

    current_app.logger.info("Invoice %s created for user %s", invoice_number, current_user.id)
    flash("Invoice created.", "success")
    return redirect(url_for("invoices.invoice_detail", invoice_id=invoice.id))


# ---------------------------------------------------------------------
# Detail
# ---------------------------------------------------------------------
@invoices_bp.route("/<int:invoice_id>")
@app_user_required
def invoice_detail(invoice_id: int):
    invoice = owned_or_404(Invoice, invoice_id)
    settings = CompanySettings.for_user(current_user.id)
    db.session.commit()

    return render_template(
        "invoices/detail.html",
        invoice=invoice,
        settings=settings,
        vat_breakdown=invoice.vat_breakdown(),
    )


# ---------------------------------------------------------------------
# Status / delete
# ---------------------------------------------------------------------
@invoices_bp.route("/<int:invoice_id>/status", methods=["POST"])
@app_user_required
def set_status(invoice_id: int):
    invoice = owned_or_404(Invoice, invoice_id)
    next_url = safe_next_url(request.form.get("next"), "invoices.list_invoices")

    new_status = form_str("status")
    if new_status not in INVOICE_STATUSES:
        flash("Invalid invoice status.", "danger")
        return redirect(next_url)

    if new_status == invoice.status:
        flash(f"Invoice {invoice.invoice_number} is already {new_status}.", "warning")
        return redirect(next_url)

    before_snapshot = serialize_model(invoice)
    invoice.status = new_status

    db.session.flush()
    log_action(
        "invoice_status_updated",
        {"invoice_number": invoice.invoice_number, "status": new_status},
        entity=invoice,
        before=before_snapshot,
        after=serialize_model(invoice),
    )
    db.session.commit()

    flash("Invoice status updated.", "success")
    return redirect(next_url)


@invoices_bp.route("/<int:invoice_id>/delete", methods=["POST"])
@app_user_required
def delete_invoice(invoice_id: int):
    invoice = owned_or_404(Invoice, invoice_id)

    log_action(
        "invoice_deleted",
        {"invoice_number": invoice.invoice_number},
        entity=invoice,
        before=serialize_model(invoice),
    )
    db.session.delete(invoice)
    db.session.commit()

    flash("Invoice deleted.", "success")
    return redirect(url_for("invoices.list_invoices"))
