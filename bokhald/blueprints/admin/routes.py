"""
bokhald/blueprints/admin/routes.py

Admin Routes

Includes:
- User management: role toggles (admin, super_admin, reporting), access toggle, delete
- Activity log (super admin only)

Rules enforced here:
- Admin-only access (admin_required / super_admin_required)
- Only super admins may grant or revoke super_admin, or delete a super admin
- A super admin's admin role cannot be revoked directly (revoke super_admin first)
- Administrators cannot change their own roles or access, nor delete themselves
- Audit logging for every change, in the same transaction.
  Pattern: db.session.flush() -> log_action(...) -> db.session.commit()
"""

from __future__ import annotations

from flask import (
    Blueprint,
    abort,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user

from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import ROLE_ADMIN, ROLE_REPORTING, ROLE_SUPER_ADMIN, ActivityLog, User
from ...security import admin_required, apply_role_change, super_admin_required
from ...utils import form_str, parse_optional_int

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

MANAGEABLE_ROLES = (ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLE_REPORTING)

ACTIVITY_LOG_PAGE_SIZE = 50


def _load_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        abort(404)
    return user


def _form_flag(name: str) -> bool:
    return form_str(name).lower() in ("1", "true", "on", "yes")


# -------------------------------------------------------
# USERS
# -------------------------------------------------------
@admin_bp.route("/users")
@admin_required
def users():
    """List all accounts."""
    all_users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return render_template("admin/users.html", users=all_users, manageable_roles=MANAGEABLE_ROLES)


@admin_bp.route("/users/<int:user_id>/roles", methods=["POST"])
@admin_required
def update_role(user_id: int):
    """Grant or revoke one role."""
    user = _load_user(user_id)
    role = form_str("role")
    enabled = _form_flag("enabled")

    if role not in MANAGEABLE_ROLES:
        flash("Unknown role.", "danger")
        return redirect(url_for("admin.users"))

    if user.id == current_user.id and role in (ROLE_ADMIN, ROLE_SUPER_ADMIN):
        flash("You cannot change your own administrator roles.", "danger")
        return redirect(url_for("admin.users"))

    if role == ROLE_SUPER_ADMIN and not current_user.is_super_admin:
        flash("Only a super admin can change the super admin role.", "danger")
        return redirect(url_for("admin.users"))

    if role == ROLE_ADMIN and not enabled and user.is_super_admin:
        flash("A super admin's admin role cannot be revoked directly.", "warning")
        return redirect(url_for("admin.users"))

    before_snapshot = serialize_model(user)
    user.roles = apply_role_change(user.roles, role, enabled)

    db.session.flush()
    log_action(
        "user_roles_updated",
        {"target_email": user.email, "role": role, "enabled": enabled, "roles": user.roles},
        entity=user,
        before=before_snapshot,
        after=serialize_model(user),
    )
    db.session.commit()

    flash(f"Permissions updated for {user.email}.", "success")
    return redirect(url_for("admin.users"))


@admin_bp.route("/users/<int:user_id>/access", methods=["POST"])
@admin_required
def update_access(user_id: int):
    """Allow or deactivate an account."""
    user = _load_user(user_id)
    allowed = _form_flag("access_allowed")

    if user.id == current_user.id:
        flash("You cannot change access for your own account.", "danger")
        return redirect(url_for("admin.users"))

    before_snapshot = serialize_model(user)
    user.access_allowed = allowed

    db.session.flush()
    log_action(
        "user_access_updated",
        {"target_email": user.email, "access_allowed": allowed},
        entity=user,
        before=before_snapshot,
        after=serialize_model(user),
    )
    db.session.commit()

    flash(f"Access for {user.email} was updated.", "success")
    return redirect(url_for("admin.users"))


@admin_bp.route("/users/<int:user_id>/delete", methods=["POST"])
@admin_required
def delete_user(user_id: int):
    """Delete an account with all of its entries, invoices and settings."""
    user = _load_user(user_id)

    if user.id == current_user.id:
        flash("You cannot delete your own account.", "danger")
        return redirect(url_for("admin.users"))

    if user.is_super_admin and not current_user.is_super_admin:
        flash("Only a super admin can delete a super admin.", "danger")
        return redirect(url_for("admin.users"))

    email = user.email
    log_action(
        "user_deleted",
        {"target_email": email},
        entity=user,
        before=serialize_model(user),
    )
    db.session.delete(user)
    db.session.commit()

    flash(f"User {email} deleted.", "success")
    return redirect(url_for("admin.users"))


# -------------------------------------------------------
# ACTIVITY LOG
# -------------------------------------------------------
@admin_bp.route("/activity-log")
@super_admin_required
def activity_log():
    """Newest activity first, optionally filtered by action."""
    page = parse_optional_int(request.args.get("page")) or 1
    action_filter = (request.args.get("action") or "").strip()

    q = ActivityLog.query
    if action_filter:
        q = q.filter(ActivityLog.action == action_filter)

    pagination = q.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc()).paginate(
        page=page, per_page=ACTIVITY_LOG_PAGE_SIZE, error_out=False
    )
    actions = [row[0] for row in db.session.query(ActivityLog.action).distinct().order_by(ActivityLog.action)]

    return render_template(
        "admin/activity_log.html",
        logs=pagination.items,
        pagination=pagination,
        actions=actions,
        action_filter=action_filter,
    )
