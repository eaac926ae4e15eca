"""
bokhald/blueprints/settings/routes.py

Company settings of the signed-in tenant: identity, bank details, default VAT
rate and the invoice numbering counters.

AUDIT:
- Updates are audited with before/after snapshots via bokhald/audit.py.
"""

from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, request, url_for
from flask_login import current_user

from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import VAT_RATES, CompanySettings
from ...security import app_user_required
from ...utils import form_str, parse_decimal, parse_optional_int
from ...validation import validate_settings

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")

TEXT_FIELDS = (
    "company_name",
    "logo_url",
    "kennitala",
    "vat_number",
    "address",
    "city",
    "postal_code",
    "bank",
    "branch",
    "account_number",
)


def _read_settings_form() -> dict:
    values = {field: form_str(field) for field in TEXT_FIELDS}
    values["vat_rate"] = parse_decimal(request.form.get("vat_rate"))
    values["next_invoice_number"] = parse_optional_int(request.form.get("next_invoice_number"))
    values["last_invoice_year"] = parse_optional_int(request.form.get("last_invoice_year"))
    return values


@settings_bp.route("/", methods=["GET", "POST"])
@app_user_required
def company():
    """View and update company settings."""
    settings = CompanySettings.for_user(current_user.id)

    if request.method == "POST":
        values = _read_settings_form()
        errors = validate_settings(values)
        if errors:
            for message in errors:
                flash(message, "danger")
            return render_template("settings/company.html", settings=settings, form=request.form,
                                   vat_rates=VAT_RATES), 400

        before_snapshot = serialize_model(settings)
        for field, value in values.items():
            setattr(settings, field, value)

        db.session.flush()
        log_action("settings_updated", entity=settings, before=before_snapshot, after=serialize_model(settings))
        db.session.commit()

        flash("Settings saved.", "success")
        return redirect(url_for("settings.company"))

    db.session.commit()
    return render_template("settings/company.html", settings=settings, form={}, vat_rates=VAT_RATES)
