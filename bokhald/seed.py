"""
bokhald/seed.py

Maintenance operations behind the Flask CLI commands.

Rules:
- create_admin_user is safe to run multiple times: an existing account is
  promoted (roles merged, access re-allowed) instead of duplicated.
- mark_overdue_invoices only touches unpaid invoices whose due date has passed.
"""

from __future__ import annotations

from datetime import date

from .audit import log_action
from .extensions import db
from .models import ROLE_ADMIN, ROLE_SUPER_ADMIN, Invoice, User
from .security import apply_role_change


def create_admin_user(email: str, password: str, super_admin: bool = False) -> User:
    """Create (or promote) an administrator account and commit."""
    email = email.strip().lower()
    user = User.query.filter_by(email=email).first()
    created = user is None

    if created:
        if not password:
            raise ValueError("A password is required for a new administrator.")
        user = User(email=email, roles=[], access_allowed=True, plan="enterprise")
        db.session.add(user)

    roles = apply_role_change(user.roles, ROLE_ADMIN, True)
    if super_admin:
        roles = apply_role_change(roles, ROLE_SUPER_ADMIN, True)
    user.roles = roles
    user.access_allowed = True
    if password:
        user.set_password(password)

    db.session.flush()
    log_action(
        "admin_created" if created else "admin_promoted",
        {"message": f"Administrator {email} set up from the command line", "roles": roles},
        entity=user,
        actor=user,
    )
    db.session.commit()
    return user


def mark_overdue_invoices(today: date | None = None) -> int:
    """Flag unpaid invoices past their due date as overdue. Returns the number changed."""
    today = today or date.today()
    invoices = Invoice.query.filter(Invoice.status == "unpaid", Invoice.due_date < today).all()

    for invoice in invoices:
        invoice.status = "overdue"
        log_action(
            "invoice_marked_overdue",
            {"invoice_number": invoice.invoice_number, "due_date": invoice.due_date.isoformat()},
            entity=invoice,
            actor=invoice.user,
        )

    db.session.commit()
    return len(invoices)
