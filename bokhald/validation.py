"""
Server-side form validation.

Each validate_* function takes already-parsed values and returns a list of
human readable error messages. An empty list means the input is valid.
Routes flash the messages and redirect back to the form.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from urllib.parse import urlparse

from .models import PAYMENT_METHODS, PLANS, TRANSACTION_TYPES

KENNITALA_RE = re.compile(r"^\d{10}$")
POSTAL_CODE_RE = re.compile(r"^\d{3}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_PASSWORD_LENGTH = 6


def _min_length(value: str | None, length: int) -> bool:
    return len((value or "").strip()) >= length


def _max_two_decimals(value: Decimal) -> bool:
    """Money and quantity columns hold two decimals; more would be rounded on save."""
    return value == value.quantize(Decimal("0.01"))


def is_valid_kennitala(value: str | None) -> bool:
    return bool(KENNITALA_RE.match(value or ""))


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_signup(email: str, kennitala: str, password: str, confirm_password: str, plan: str) -> list[str]:
    errors = []
    if not EMAIL_RE.match(email or ""):
        errors.append("Enter a valid email address.")
    if not is_valid_kennitala(kennitala):
        errors.append("Kennitala must be 10 digits.")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if password != confirm_password:
        errors.append("Passwords don't match.")
    if plan not in PLANS:
        errors.append("You need to select a plan.")
    return errors


def validate_entry(
    description: str,
    category: str,
    amount: Decimal | None,
    entry_type: str,
    vat_rate: Decimal | None,
    payment_method: str,
) -> list[str]:
    errors = []
    if not _min_length(description, 2):
        errors.append("Description must be at least 2 characters.")
    if not _min_length(category, 2):
        errors.append("Category must be at least 2 characters.")
    if amount is None or amount <= 0:
        errors.append("Amount must be a positive number.")
    elif not _max_two_decimals(amount):
        errors.append("Amount can have at most 2 decimals.")
    if entry_type not in TRANSACTION_TYPES:
        errors.append("You need to select a type.")
    if vat_rate is None or not (Decimal("0") <= vat_rate <= Decimal("100")):
        errors.append("You need to select a VAT rate.")
    if payment_method not in PAYMENT_METHODS:
        errors.append("You need to select a payment method.")
    return errors


def validate_invoice_item(index: int, description: str, quantity: Decimal | None, unit_price: Decimal | None,
                          vat_rate: Decimal | None) -> list[str]:
    line = f"Line {index}"
    errors = []
    if not _min_length(description, 1):
        errors.append(f"{line}: description is required.")
    if quantity is None or quantity < Decimal("0.01"):
        errors.append(f"{line}: quantity must be positive.")
    elif not _max_two_decimals(quantity):
        errors.append(f"{line}: quantity can have at most 2 decimals.")
    if unit_price is None or unit_price < 0:
        errors.append(f"{line}: unit price cannot be negative.")
    elif not _max_two_decimals(unit_price):
        errors.append(f"{line}: unit price can have at most 2 decimals.")
    if vat_rate is None or not (Decimal("0") <= vat_rate <= Decimal("100")):
        errors.append(f"{line}: invalid VAT rate.")
    return errors


def validate_invoice(
    client_name: str,
    client_address: str,
    client_kennitala: str,
    issue_date: date | None,
    due_date: date | None,
    items: list[dict],
) -> list[str]:
    """Header fields plus every item (see validate_invoice_item)."""
    errors = []
    if not _min_length(client_name, 2):
        errors.append("Client name must be at least 2 characters.")
    if not _min_length(client_address, 2):
        errors.append("Client address is required.")
    if not is_valid_kennitala(client_kennitala):
        errors.append("Kennitala must be 10 digits.")
    if issue_date is None:
        errors.append("Issue date is required.")
    if due_date is None:
        errors.append("Due date is required.")
    if not items:
        errors.append("At least one item is required.")

    for idx, item in enumerate(items, start=1):
        errors.extend(
            validate_invoice_item(idx, item["description"], item["quantity"], item["unit_price"], item["vat_rate"])
        )
    return errors


def validate_settings(values: dict) -> list[str]:
    """Company settings form; values holds parsed fields keyed by column name."""
    errors = []
    if not _min_length(values.get("company_name"), 2):
        errors.append("Company name must be at least 2 characters.")

    logo_url = values.get("logo_url") or ""
    if logo_url and not is_valid_url(logo_url):
        errors.append("Please enter a valid URL.")

    if not is_valid_kennitala(values.get("kennitala")):
        errors.append("Kennitala must be 10 digits.")

    vat_number = values.get("vat_number") or ""
    if vat_number and len(vat_number) < 2:
        errors.append("VAT number is required.")

    if not _min_length(values.get("address"), 2):
        errors.append("Address is required.")
    if not _min_length(values.get("city"), 2):
        errors.append("City is required.")
    if not POSTAL_CODE_RE.match(values.get("postal_code") or ""):
        errors.append("Postal code must be 3 digits.")
    if not _min_length(values.get("bank"), 4):
        errors.append("Bank number must be 4 digits.")
    if not _min_length(values.get("branch"), 2):
        errors.append("Branch (hb) must be 2 digits.")
    if not _min_length(values.get("account_number"), 6):
        errors.append("Account number must be at least 6 digits.")

    vat_rate = values.get("vat_rate")
    if vat_rate is None or not (Decimal("0") <= vat_rate <= Decimal("100")):
        errors.append("VAT rate must be between 0 and 100.")

    next_number = values.get("next_invoice_number")
    if next_number is None or next_number < 1:
        errors.append("Next invoice number must be at least 1.")

    last_year = values.get("last_invoice_year")
    if last_year is None or last_year < 2000:
        errors.append("Year must be valid.")

    return errors
