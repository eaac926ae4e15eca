"""Shared pytest fixtures for bokhald tests."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from bokhald import create_app
from bokhald.extensions import db
from bokhald.models import CompanySettings, Invoice, InvoiceItem, Transaction, User

PASSWORD = "secret123"


@pytest.fixture
def app():
    """Application on a fresh in-memory database."""
    app = create_app("config.TestConfig")
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Create a user (with company settings) and return its id."""

    def _make_user(email, roles=None, access_allowed=True, password=PASSWORD, kennitala="1234567890"):
        with app.app_context():
            user = User(
                email=email,
                kennitala=kennitala,
                roles=list(roles or []),
                access_allowed=access_allowed,
                plan="pro",
            )
            user.set_password(password)
            db.session.add(user)
            db.session.flush()
            CompanySettings.for_user(user.id)
            db.session.commit()
            return user.id

    return _make_user


@pytest.fixture
def login(client):
    """Sign a user in through the login forms."""

    def _login(email, password=PASSWORD, admin=False):
        url = "/auth/admin-login" if admin else "/auth/login"
        return client.post(url, data={"email": email, "password": password})

    return _login


@pytest.fixture
def tenant(make_user):
    return make_user("anna@example.com")


@pytest.fixture
def tenant_client(client, login, tenant):
    login("anna@example.com")
    return client


@pytest.fixture
def admin_user(make_user):
    return make_user("admin@example.com", roles=["admin"])


@pytest.fixture
def admin_client(client, login, admin_user):
    login("admin@example.com", admin=True)
    return client


@pytest.fixture
def super_admin_user(make_user):
    return make_user("root@example.com", roles=["super_admin", "admin"])


@pytest.fixture
def super_client(client, login, super_admin_user):
    login("root@example.com", admin=True)
    return client


@pytest.fixture
def make_entry(app):
    def _make_entry(user_id, amount, entry_type="sale", vat_rate=24, when=None, description="Consulting"):
        with app.app_context():
            entry = Transaction(
                user_id=user_id,
                date=when or datetime(2025, 3, 15),
                description=description,
                category="Services",
                amount=Decimal(str(amount)),
                type=entry_type,
                vat_rate=Decimal(str(vat_rate)),
                payment_method="bank",
            )
            db.session.add(entry)
            db.session.commit()
            return entry.id

    return _make_entry


@pytest.fixture
def make_invoice(app):
    def _make_invoice(user_id, number="2025-001", status="unpaid", due=None, items=((1, 12400, 24),)):
        with app.app_context():
            invoice = Invoice(
                user_id=user_id,
                invoice_number=number,
                client_name="Viðskiptavinur ehf.",
                client_address="Laugavegur 1",
                client_kennitala="5501012340",
                issue_date=date(2025, 1, 10),
                due_date=due or date(2025, 1, 24),
                status=status,
            )
            for line_no, (qty, price, rate) in enumerate(items, start=1):
                invoice.items.append(
                    InvoiceItem(
                        line_no=line_no,
                        description=f"Item {line_no}",
                        quantity=Decimal(str(qty)),
                        unit_price=Decimal(str(price)),
                        vat_rate=Decimal(str(rate)),
                    )
                )
            invoice.recalc_totals()
            db.session.add(invoice)
            db.session.commit()
            return invoice.id

    return _make_invoice
