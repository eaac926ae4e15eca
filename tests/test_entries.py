from datetime import datetime
from decimal import Decimal

from bokhald.models import ActivityLog, Transaction

ENTRY = {
    "date": "2025-03-15",
    "description": "Consulting",
    "category": "Services",
    "amount": "12400",
    "type": "sale",
    "vat_rate": "24",
    "payment_method": "bank",
}


def test_create_entry(app, tenant_client, tenant):
    resp = tenant_client.post("/entries/new", data=ENTRY)
    assert resp.status_code == 302

    with app.app_context():
        entry = Transaction.query.one()
        assert entry.user_id == tenant
        assert entry.amount == Decimal("12400.00")
        assert entry.date == datetime(2025, 3, 15)
        assert entry.vat_amount == Decimal("2976.00")
        assert ActivityLog.query.filter_by(action="entry_created").count() == 1


def test_create_entry_accepts_comma_decimal(app, tenant_client):
    tenant_client.post("/entries/new", data=dict(ENTRY, amount="1234,50"))
    with app.app_context():
        assert Transaction.query.one().amount == Decimal("1234.50")


def test_create_entry_validation(app, tenant_client):
    resp = tenant_client.post("/entries/new", data=dict(ENTRY, amount="-5", date="15/03/2025"))
    assert resp.status_code == 400
    assert b"Amount must be a positive number." in resp.data
    assert b"Date must be in the format YYYY-MM-DD." in resp.data
    with app.app_context():
        assert Transaction.query.count() == 0


def test_list_filters_by_search_and_period(tenant_client, tenant, make_entry):
    make_entry(tenant, 1000, description="Coffee beans", when=datetime(2025, 3, 1))
    make_entry(tenant, 2000, description="Web design", when=datetime(2025, 4, 1))

    body = tenant_client.get("/entries/?q=coffee").data
    assert b"Coffee beans" in body
    assert b"Web design" not in body

    body = tenant_client.get("/entries/?period=month&date=2025-04-10").data
    assert b"Web design" in body
    assert b"Coffee beans" not in body


def test_edit_entry_keeps_date_when_blank(app, tenant_client, tenant, make_entry):
    entry_id = make_entry(tenant, 1000, when=datetime(2025, 2, 2))
    data = dict(ENTRY, date="", amount="1500", type="expense")
    resp = tenant_client.post(f"/entries/{entry_id}/edit", data=data)
    assert resp.status_code == 302

    with app.app_context():
        entry = Transaction.query.one()
        assert entry.amount == Decimal("1500.00")
        assert entry.type == "expense"
        assert entry.date == datetime(2025, 2, 2)
        log = ActivityLog.query.filter_by(action="entry_updated").one()
        assert log.details_dict["before"]["amount"] == "1000.00"


def test_delete_entry(app, tenant_client, tenant, make_entry):
    entry_id = make_entry(tenant, 1000)
    resp = tenant_client.post(f"/entries/{entry_id}/delete", follow_redirects=True)
    assert b"Entry deleted." in resp.data
    with app.app_context():
        assert Transaction.query.count() == 0
        assert ActivityLog.query.filter_by(action="entry_deleted").count() == 1


def test_other_tenants_entries_are_invisible(app, tenant_client, make_user, make_entry):
    other = make_user("other@example.com")
    entry_id = make_entry(other, 999, description="Secret deal")

    assert b"Secret deal" not in tenant_client.get("/entries/").data
    assert tenant_client.get(f"/entries/{entry_id}/edit").status_code == 404
    assert tenant_client.post(f"/entries/{entry_id}/delete").status_code == 404
    with app.app_context():
        assert Transaction.query.count() == 1


def test_dashboard_totals(tenant_client, tenant, make_entry):
    make_entry(tenant, 12400, "sale", 24)
    make_entry(tenant, 2220, "expense", 11)

    body = tenant_client.get("/dashboard").data.decode()
    assert "12.400 kr." in body
    assert "2.220 kr." in body
    assert "10.180 kr." in body
    assert "2.976 kr." in body
    assert "2025-03" in body
