from datetime import date, timedelta
from decimal import Decimal

from bokhald.extensions import db
from bokhald.models import ActivityLog, CompanySettings, Invoice

TODAY = date.today()


def _invoice_form(**overrides):
    data = {
        "client_name": "Viðskiptavinur ehf.",
        "client_address": "Laugavegur 1, 101 Reykjavík",
        "client_kennitala": "5501012340",
        "issue_date": TODAY.isoformat(),
        "due_date": (TODAY + timedelta(days=14)).isoformat(),
        "item_description": ["Design work", "Printing", ""],
        "item_quantity": ["1", "2", "1"],
        "item_unit_price": ["12400", "1110", ""],
        "item_vat_rate": ["24", "11", "24"],
    }
    data.update(overrides)
    return data


def test_new_invoice_form_has_defaults(tenant_client):
    body = tenant_client.get("/invoices/new").data.decode()
    assert TODAY.isoformat() in body
    assert (TODAY + timedelta(days=14)).isoformat() in body


def test_create_invoice(app, tenant_client, tenant):
    resp = tenant_client.post("/invoices/new", data=_invoice_form())
    assert resp.status_code == 302

    with app.app_context():
        invoice = Invoice.query.one()
        assert invoice.invoice_number == f"{TODAY.year}-001"
        assert invoice.status == "unpaid"
        assert len(invoice.items) == 2
        assert invoice.total == Decimal("14620.00")
        assert invoice.subtotal == Decimal("12000.00")
        assert invoice.vat_amount == Decimal("2620.00")
        assert resp.headers["Location"].endswith(f"/invoices/{invoice.id}")

        settings = CompanySettings.for_user(tenant)
        assert settings.next_invoice_number == 2
        assert settings.last_invoice_year == TODAY.year
        assert ActivityLog.query.filter_by(action="invoice_created").count() == 1


def test_invoice_numbers_increase(app, tenant_client):
    tenant_client.post("/invoices/new", data=_invoice_form())
    tenant_client.post("/invoices/new", data=_invoice_form())
    with app.app_context():
        numbers = sorted(i.invoice_number for i in Invoice.query.all())
        assert numbers == [f"{TODAY.year}-001", f"{TODAY.year}-002"]


def test_numbers_are_per_tenant(app, client, login, make_user):
    make_user("one@example.com")
    make_user("two@example.com")

    login("one@example.com")
    client.post("/invoices/new", data=_invoice_form())
    client.get("/auth/logout")
    login("two@example.com")
    client.post("/invoices/new", data=_invoice_form())

    with app.app_context():
        assert {i.invoice_number for i in Invoice.query.all()} == {f"{TODAY.year}-001"}


def test_numbering_follows_settings(app, tenant_client, tenant):
    with app.app_context():
        settings = CompanySettings.for_user(tenant)
        settings.next_invoice_number = 42
        db.session.commit()

    tenant_client.post("/invoices/new", data=_invoice_form())
    with app.app_context():
        assert Invoice.query.one().invoice_number == f"{TODAY.year}-042"


def test_backdated_invoice_is_rejected(app, tenant_client):
    last_year = TODAY.replace(year=TODAY.year - 1, day=1)
    resp = tenant_client.post(
        "/invoices/new",
        data=_invoice_form(issue_date=last_year.isoformat(), due_date=last_year.isoformat()),
    )
    assert resp.status_code == 400
    assert b"Invoice numbering is already in" in resp.data
    with app.app_context():
        assert Invoice.query.count() == 0


def test_create_invoice_validation(app, tenant_client):
    data = _invoice_form(
        client_kennitala="123",
        item_description=["", ""],
        item_unit_price=["", ""],
    )
    resp = tenant_client.post("/invoices/new", data=data)
    assert resp.status_code == 400
    assert b"Kennitala must be 10 digits." in resp.data
    assert b"At least one item is required." in resp.data
    with app.app_context():
        assert Invoice.query.count() == 0
        assert CompanySettings.query.one().next_invoice_number == 1


def test_invalid_line_is_reported(tenant_client):
    data = _invoice_form(item_description=["Design work", ""], item_unit_price=["12400", "50"])
    resp = tenant_client.post("/invoices/new", data=data)
    assert resp.status_code == 400
    assert b"Line 2: description is required." in resp.data


def test_detail_shows_vat_breakdown(tenant_client, tenant, make_invoice):
    invoice_id = make_invoice(tenant, items=((1, 12400, 24), (2, 1110, 11)))
    body = tenant_client.get(f"/invoices/{invoice_id}").data.decode()
    assert "2025-001" in body
    assert "14.620 kr." in body
    assert "2.400 kr." in body
    assert "220 kr." in body


def test_list_is_sorted_and_filterable(tenant_client, tenant, make_invoice):
    make_invoice(tenant, number="2025-002", status="paid")
    make_invoice(tenant, number="2025-010")
    make_invoice(tenant, number="2024-100")

    body = tenant_client.get("/invoices/").data.decode()
    assert body.index("2025-010") < body.index("2025-002") < body.index("2024-100")
    assert 'class="row-paid"' in body

    body = tenant_client.get("/invoices/?status=paid").data.decode()
    assert "2025-002" in body
    assert "2025-010" not in body


def test_set_status(app, tenant_client, tenant, make_invoice):
    invoice_id = make_invoice(tenant)
    resp = tenant_client.post(f"/invoices/{invoice_id}/status", data={"status": "paid"})
    assert resp.status_code == 302

    with app.app_context():
        assert db.session.get(Invoice, invoice_id).status == "paid"
        log = ActivityLog.query.filter_by(action="invoice_status_updated").one()
        assert log.details_dict["before"]["status"] == "unpaid"
        assert log.details_dict["after"]["status"] == "paid"


def test_set_status_rejects_unknown_and_unchanged(app, tenant_client, tenant, make_invoice):
    invoice_id = make_invoice(tenant)
    resp = tenant_client.post(f"/invoices/{invoice_id}/status", data={"status": "void"}, follow_redirects=True)
    assert b"Invalid invoice status." in resp.data

    resp = tenant_client.post(f"/invoices/{invoice_id}/status", data={"status": "unpaid"}, follow_redirects=True)
    assert b"is already unpaid" in resp.data
    with app.app_context():
        assert ActivityLog.query.filter_by(action="invoice_status_updated").count() == 0


def test_delete_invoice(app, tenant_client, tenant, make_invoice):
    invoice_id = make_invoice(tenant)
    tenant_client.post(f"/invoices/{invoice_id}/delete")
    with app.app_context():
        assert Invoice.query.count() == 0
        assert ActivityLog.query.filter_by(action="invoice_deleted").count() == 1


def test_other_tenants_invoice_is_404(tenant_client, make_user, make_invoice):
    other = make_user("other@example.com")
    invoice_id = make_invoice(other)
    assert tenant_client.get(f"/invoices/{invoice_id}").status_code == 404
    assert tenant_client.post(f"/invoices/{invoice_id}/status", data={"status": "paid"}).status_code == 404
    assert tenant_client.post(f"/invoices/{invoice_id}/delete").status_code == 404


def test_sub_cent_price_is_rejected(app, tenant_client):
    data = _invoice_form(
        item_description=["Staples"],
        item_quantity=["3"],
        item_unit_price=["0.335"],
        item_vat_rate=["24"],
    )
    resp = tenant_client.post("/invoices/new", data=data)
    assert resp.status_code == 400
    assert b"Line 1: unit price can have at most 2 decimals." in resp.data
    with app.app_context():
        assert Invoice.query.count() == 0
        assert CompanySettings.query.one().next_invoice_number == 1


def test_stored_totals_match_printed_lines(app, tenant_client):
    data = _invoice_form(
        item_description=["Hours", "Paper"],
        item_quantity=["1.5", "3"],
        item_unit_price=["999.99", "0.33"],
        item_vat_rate=["24", "11"],
    )
    assert tenant_client.post("/invoices/new", data=data).status_code == 302

    with app.app_context():
        invoice = Invoice.query.one()
        assert invoice.items[1].unit_price == Decimal("0.33")
        assert sum(item.line_total for item in invoice.items) == invoice.total
        assert sum(item.line_net for item in invoice.items) == invoice.subtotal

        breakdown = invoice.vat_breakdown()
        assert sum(row["base"] + row["vat"] for row in breakdown) == invoice.total
        assert sum(row["vat"] for row in breakdown) == invoice.vat_amount


def test_duplicate_number_is_rolled_back(app, tenant_client, tenant, make_invoice):
    make_invoice(tenant, number=f"{TODAY.year}-001")
    with app.app_context():
        settings = CompanySettings.for_user(tenant)
        settings.next_invoice_number = 1
        settings.last_invoice_year = TODAY.year
        db.session.commit()

    resp = tenant_client.post("/invoices/new", data=_invoice_form(), follow_redirects=True)
    assert f"Invoice number {TODAY.year}-001 is already in use.".encode() in resp.data

    with app.app_context():
        assert Invoice.query.count() == 1
        assert CompanySettings.query.filter_by(user_id=tenant).one().next_invoice_number == 1
        assert ActivityLog.query.filter_by(action="invoice_created").count() == 0
