"""
bókhald – Domain Models

Tenants (users) own their bookkeeping entries, invoices and a single
CompanySettings row. Administrators manage users; every mutation is recorded
in the append-only ActivityLog.

Money:
- All amounts are Decimal, stored with two decimals (ROUND_HALF_UP).
- Rates are percents (24 means 24%).
- Invoice line prices are VAT-inclusive; VAT is extracted from the gross
  line total: vat = total - total / (1 + rate/100).
- Bookkeeping entry amounts are VAT-exclusive: vat = amount * rate / 100.

IMPORTANT:
- UI is never trusted. Every value reaching these models is validated server-side in routes.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db


# ---------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------
ROLE_SUPER_ADMIN = "super_admin"
ROLE_ADMIN = "admin"
ROLE_EDITOR = "editor"
ROLE_VIEWER = "viewer"
ROLE_REPORTING = "reporting"

# Canonical order, used when roles are rewritten
ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_EDITOR, ROLE_VIEWER, ROLE_REPORTING)
ADMIN_ROLES = frozenset({ROLE_ADMIN, ROLE_SUPER_ADMIN})

PLANS = ("free", "pro", "enterprise")
TRANSACTION_TYPES = ("sale", "expense")
PAYMENT_METHODS = ("cash", "card", "bank")
INVOICE_STATUSES = ("paid", "unpaid", "overdue")

# Icelandic VAT rates offered in forms
VAT_RATES = (24, 11, 0)

DEFAULT_COMPANY_NAME = "bókhald"


class InvoiceNumberingError(ValueError):
    """Raised when an invoice number cannot be allocated for an issue date."""


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _to_decimal(value) -> Decimal:
    """Convert Numeric/None to Decimal safely."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value))


def _money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def vat_included(gross, rate) -> Decimal:
    """VAT contained in a VAT-inclusive amount."""
    gross = _to_decimal(gross)
    divisor = Decimal("1") + _to_decimal(rate) / Decimal("100")
    return _money(gross - gross / divisor)


def vat_on(net, rate) -> Decimal:
    """VAT charged on a VAT-exclusive amount (bookkeeping entries)."""
    return _money(_to_decimal(net) * _to_decimal(rate) / Decimal("100"))


def compute_line(quantity, unit_price, vat_rate) -> tuple[Decimal, Decimal, Decimal]:
    """
    Return (net, vat, total) for a VAT-inclusive line.

    net + vat == total holds exactly after rounding.
    """
    total = _money(_to_decimal(quantity) * _to_decimal(unit_price))
    vat = vat_included(total, vat_rate)
    return total - vat, vat, total


def _rate_key(rate) -> Decimal:
    """24.00 -> 24, 5.50 -> 5.5 (no exponent notation)."""
    rate = _to_decimal(rate)
    if rate == rate.to_integral_value():
        return rate.quantize(Decimal("1"))
    return rate.normalize()


def format_invoice_number(year: int, sequence: int) -> str:
    return f"{year}-{sequence:03d}"


def invoice_sort_key(invoice_number: str | None) -> tuple[int, int]:
    """(year, sequence) for ordering; malformed numbers sort last."""
    try:
        year, seq = (invoice_number or "").split("-", 1)
        return int(year), int(seq)
    except ValueError:
        return 0, 0


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """Login account. Non-admin users are tenants owning bookkeeping data."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    kennitala = db.Column(db.String(10), nullable=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    roles = db.Column(db.JSON, nullable=False, default=list)
    access_allowed = db.Column(db.Boolean, default=True, nullable=False, index=True)
    plan = db.Column(db.String(20), nullable=False, default="pro")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    settings = db.relationship(
        "CompanySettings",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    transactions = db.relationship(
        "Transaction",
        back_populates="user",
        lazy=True,
        cascade="all, delete-orphan",
    )
    invoices = db.relationship(
        "Invoice",
        back_populates="user",
        lazy=True,
        cascade="all, delete-orphan",
    )
    # Deleting a user keeps their log rows (user_id is nulled, email snapshot stays)
    activity_logs = db.relationship("ActivityLog", back_populates="user", lazy=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])

    @property
    def is_admin(self) -> bool:
        return bool(ADMIN_ROLES.intersection(self.roles or []))

    @property
    def is_super_admin(self) -> bool:
        return self.has_role(ROLE_SUPER_ADMIN)

    def can_view_reporting(self) -> bool:
        return self.is_admin or self.has_role(ROLE_REPORTING)

    def __repr__(self):
        return f"<User {self.email}>"


# ---------------------------------------------------------------------
# Per-tenant settings
# ---------------------------------------------------------------------
class CompanySettings(db.Model):
    """
    Company identity, bank details and invoice numbering counters.

    Exactly one row per user, created lazily by for_user().
    """

    __tablename__ = "company_settings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    company_name = db.Column(db.String(255), nullable=False, default=DEFAULT_COMPANY_NAME)
    logo_url = db.Column(db.String(500), nullable=False, default="")
    kennitala = db.Column(db.String(10), nullable=False, default="")
    vat_number = db.Column(db.String(50), nullable=False, default="")
    address = db.Column(db.String(255), nullable=False, default="")
    city = db.Column(db.String(120), nullable=False, default="")
    postal_code = db.Column(db.String(10), nullable=False, default="")

    bank = db.Column(db.String(20), nullable=False, default="")
    branch = db.Column(db.String(20), nullable=False, default="")
    account_number = db.Column(db.String(20), nullable=False, default="")

    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("24"))
    next_invoice_number = db.Column(db.Integer, nullable=False, default=1)
    last_invoice_year = db.Column(db.Integer, nullable=False, default=lambda: date.today().year)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", back_populates="settings")

    @classmethod
    def for_user(cls, user_id: int, *, lock: bool = False) -> "CompanySettings":
        """
        Return the settings row of a user, creating it with defaults if missing.

        lock=True reads the row with SELECT ... FOR UPDATE (ignored by SQLite),
        used while allocating invoice numbers.
        """
        query = cls.query.filter_by(user_id=user_id)
        if lock:
            query = query.with_for_update()
        settings = query.first()
        if settings is not None:
            return settings

        settings = cls(
            user_id=user_id,
            vat_rate=Decimal(str(current_app.config.get("DEFAULT_VAT_RATE", 24))),
            next_invoice_number=1,
            last_invoice_year=date.today().year,
        )
        db.session.add(settings)
        db.session.flush()
        return settings

    @property
    def bank_account_display(self) -> str:
        """Icelandic bank account notation: bank-branch-account."""
        parts = [p for p in (self.bank, self.branch, self.account_number) if p]
        return "-".join(parts)

    def allocate_invoice_number(self, issue_year: int) -> str:
        """
        Allocate the next invoice number for an invoice issued in issue_year.

        - issue year after the counter year: sequence restarts at 1
        - same year: next sequence number
        - earlier year: rejected, the counter never goes back

        The caller owns the transaction; the counters are written back on commit.
        """
        counter_year = self.last_invoice_year or issue_year

        if issue_year > counter_year:
            sequence = 1
        elif issue_year == counter_year:
            sequence = max(int(self.next_invoice_number or 1), 1)
        else:
            raise InvoiceNumberingError(
                f"Invoice numbering is already in {counter_year}; "
                f"cannot issue an invoice dated {issue_year}."
            )

        self.next_invoice_number = sequence + 1
        self.last_invoice_year = issue_year
        return format_invoice_number(issue_year, sequence)


# ---------------------------------------------------------------------
# Bookkeeping entries
# ---------------------------------------------------------------------
class Transaction(db.Model):
    """A single sale or expense entry."""

    __tablename__ = "entries"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    type = db.Column(db.String(10), nullable=False, index=True)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("24"))
    payment_method = db.Column(db.String(10), nullable=False, default="card")

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", back_populates="transactions")

    @property
    def is_sale(self) -> bool:
        return self.type == "sale"

    @property
    def vat_amount(self) -> Decimal:
        """VAT on top of the (VAT-exclusive) amount."""
        return vat_on(self.amount, self.vat_rate)

    def __repr__(self):
        return f"<Transaction {self.type} {self.amount}>"


# ---------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------
class Invoice(db.Model):
    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    invoice_number = db.Column(db.String(20), nullable=False, index=True)

    client_name = db.Column(db.String(255), nullable=False)
    client_address = db.Column(db.String(255), nullable=False)
    client_kennitala = db.Column(db.String(10), nullable=False)

    issue_date = db.Column(db.Date, nullable=False, index=True)
    due_date = db.Column(db.Date, nullable=False, index=True)

    status = db.Column(db.String(10), nullable=False, default="unpaid", index=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    vat_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    total = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", back_populates="invoices")

    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        order_by="InvoiceItem.line_no",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "invoice_number", name="uq_invoice_user_number"),
    )

    @property
    def sort_key(self) -> tuple[int, int]:
        return invoice_sort_key(self.invoice_number)

    def recalc_totals(self):
        subtotal = Decimal("0.00")
        total = Decimal("0.00")
        for item in self.items:
            net, _vat, line_total = compute_line(item.quantity, item.unit_price, item.vat_rate)
            subtotal += net
            total += line_total

        self.subtotal = _money(subtotal)
        self.total = _money(total)
        self.vat_amount = self.total - self.subtotal

    def vat_breakdown(self) -> list[dict]:
        """
        VAT summary per rate, highest rate first:
            [{"rate": Decimal("24"), "base": ..., "vat": ...}, ...]
        """
        buckets: dict[Decimal, dict] = {}
        for item in self.items:
            rate = _rate_key(item.vat_rate)
            net, vat, _total = compute_line(item.quantity, item.unit_price, item.vat_rate)
            bucket = buckets.setdefault(rate, {"rate": rate, "base": Decimal("0.00"), "vat": Decimal("0.00")})
            bucket["base"] += net
            bucket["vat"] += vat

        return [buckets[r] for r in sorted(buckets, reverse=True)]

    def is_past_due(self, today: date | None = None) -> bool:
        today = today or date.today()
        return self.status == "unpaid" and self.due_date is not None and self.due_date < today

    def __repr__(self):
        return f"<Invoice {self.invoice_number}>"


class InvoiceItem(db.Model):
    __tablename__ = "invoice_items"

    id = db.Column(db.Integer, primary_key=True)

    invoice_id = db.Column(
        db.Integer,
        db.ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_no = db.Column(db.Integer, nullable=False, default=1)
    description = db.Column(db.Text, nullable=False)

    quantity = db.Column(db.Numeric(12, 2), nullable=False, default=1)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("24"))

    invoice = db.relationship("Invoice", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return compute_line(self.quantity, self.unit_price, self.vat_rate)[2]

    @property
    def line_net(self) -> Decimal:
        return compute_line(self.quantity, self.unit_price, self.vat_rate)[0]


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class ActivityLog(db.Model):
    """Append-only activity record (who did what, when, with free-form details)."""

    __tablename__ = "activity_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    user_email = db.Column(db.String(255), nullable=True)

    action = db.Column(db.String(50), nullable=False, index=True)
    details = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = db.relationship("User", back_populates="activity_logs")

    @property
    def details_dict(self) -> dict:
        if not self.details:
            return {}
        try:
            return json.loads(self.details)
        except ValueError:
            return {"raw": self.details}
