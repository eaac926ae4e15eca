"""
Utility functions shared across the app. This includes:
- form parsing helpers (decimal, int, date)
- safe next= redirects
- invoice_row_class: CSS class for invoice rows based on status
- format_isk: Jinja filter for Icelandic krónur
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from urllib.parse import urlparse

from flask import request, url_for


def parse_decimal(value: str | None) -> Decimal | None:
    """Parse decimal from user input (accepts comma or dot)."""
    if value is None:
        return None
    raw = str(value).strip().replace(" ", "").replace(",", ".")
    if raw == "":
        return None
    try:
        result = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def parse_optional_int(value: str | None) -> int | None:
    """Parse optional int from form/query. Returns None if empty/invalid."""
    if value is None:
        return None
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_date(value: str | None) -> date | None:
    """Parse an ISO date (YYYY-MM-DD) from a form field."""
    raw = (value or "").strip()
    if not raw:
        return None
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        return None


def form_str(name: str) -> str:
    """Stripped form value ("" when missing)."""
    return (request.form.get(name) or "").strip()


def safe_next_url(raw_next: str | None, fallback_endpoint: str) -> str:
    """
    Return a safe local next URL.

    Rules:
    - Only allow relative URLs (no scheme/netloc).
    - Fall back to an internal endpoint if invalid/empty.
    """
    if not raw_next:
        return url_for(fallback_endpoint)

    parsed = urlparse(raw_next)

    # Disallow external redirects
    if parsed.scheme or parsed.netloc:
        return url_for(fallback_endpoint)

    # Must start with a single /
    if not raw_next.startswith("/") or raw_next.startswith("//"):
        return url_for(fallback_endpoint)

    return raw_next


def invoice_row_class(invoice) -> str:
    """CSS class for an invoice row: paid -> green, overdue -> red, unpaid -> none."""
    status = (invoice.status or "").strip()
    if status == "paid":
        return "row-paid"
    if status == "overdue":
        return "row-overdue"
    return ""


def format_isk(amount) -> str:
    """1234567.5 -> '1.234.568 kr.' (Icelandic grouping, whole krónur)."""
    if amount is None:
        amount = Decimal("0")
    value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    grouped = f"{abs(int(value)):,}".replace(",", ".")
    return f"{sign}{grouped} kr."
