import pytest

from bokhald.extensions import db
from bokhald.models import User
from bokhald.security import apply_role_change


class TestApplyRoleChange:
    def test_grant_keeps_canonical_order(self):
        assert apply_role_change(["reporting"], "admin", True) == ["admin", "reporting"]

    def test_granting_super_admin_grants_admin(self):
        assert apply_role_change([], "super_admin", True) == ["super_admin", "admin"]

    def test_revoking_admin_revokes_super_admin(self):
        assert apply_role_change(["super_admin", "admin", "reporting"], "admin", False) == ["reporting"]

    def test_duplicates_are_removed(self):
        assert apply_role_change(["admin", "admin"], "admin", True) == ["admin"]

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            apply_role_change([], "owner", True)


def test_tenant_pages_require_login(client):
    for url in ("/dashboard", "/entries/", "/invoices/", "/settings/"):
        resp = client.get(url)
        assert resp.status_code == 302
        assert "/auth/login" in resp.headers["Location"]


def test_admin_is_sent_to_user_management(admin_client):
    resp = admin_client.get("/dashboard")
    assert resp.headers["Location"].endswith("/admin/users")


def test_tenant_cannot_open_admin_area(tenant_client):
    resp = tenant_client.get("/admin/users")
    assert resp.status_code == 302
    assert "error=not_admin" in resp.headers["Location"]


def test_anonymous_admin_area_goes_to_admin_login(client):
    resp = client.get("/admin/users")
    assert "/auth/admin-login" in resp.headers["Location"]
    assert "error=not_logged_in" in resp.headers["Location"]


def test_deactivated_session_is_signed_out(app, tenant_client, tenant):
    assert tenant_client.get("/dashboard").status_code == 200

    with app.app_context():
        db.session.get(User, tenant).access_allowed = False
        db.session.commit()

    resp = tenant_client.get("/dashboard")
    assert "error=deactivated" in resp.headers["Location"]
    # session was dropped
    assert "/auth/login" in tenant_client.get("/dashboard").headers["Location"]


def test_reporting_requires_role(app, tenant_client, tenant):
    resp = tenant_client.get("/reporting")
    assert "error=access_denied" in resp.headers["Location"]

    with app.app_context():
        db.session.get(User, tenant).roles = ["reporting"]
        db.session.commit()

    assert tenant_client.get("/reporting").status_code == 200


def test_activity_log_is_super_admin_only(admin_client):
    assert admin_client.get("/admin/activity-log").status_code == 403


def test_unknown_record_is_404(tenant_client):
    assert tenant_client.get("/invoices/999").status_code == 404
