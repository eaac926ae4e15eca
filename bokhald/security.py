"""
bokhald/security.py

Access control helpers.

Key rules:
- UI is never trusted; all permission checks are server-side.
- Tenant area (dashboard, entries, invoices, settings): signed-in, non-admin users
  whose access is allowed. Admins are sent to user management instead.
- Admin area: admin or super_admin role with access allowed.
- Activity log: super_admin only.
- Reporting: reporting role (or admin).
- Tenant isolation: records are always loaded through owned_or_404().

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Iterable, Tuple

from flask import abort, current_app, redirect, render_template, url_for
from flask_login import current_user, logout_user

from .models import ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLES


def _forbidden() -> Tuple[str, int]:
    """Render a consistent 403 page."""
    return render_template("errors/403.html"), 403


def is_admin() -> bool:
    """Return True if current user is authenticated and holds an admin role."""
    return bool(current_user.is_authenticated and getattr(current_user, "is_admin", False))


def is_super_admin() -> bool:
    return bool(current_user.is_authenticated and getattr(current_user, "is_super_admin", False))


def _sign_out_deactivated():
    current_app.logger.warning("Signing out deactivated account %s", current_user.email)
    logout_user()


def app_user_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator: tenant area.

    - not signed in      -> login page
    - admin/super_admin  -> admin user management
    - access not allowed -> signed out, login page with error=deactivated
    """
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            return redirect(url_for("auth.login"))
        if is_admin():
            return redirect(url_for("admin.users"))
        if not current_user.access_allowed:
            _sign_out_deactivated()
            return redirect(url_for("auth.login", error="deactivated"))
        return view_func(*args, **kwargs)

    return wrapper


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator: admin area.

    - not signed in      -> admin login with error=not_logged_in
    - not an admin       -> dashboard with error=not_admin
    - access not allowed -> signed out, landing page with error=deactivated
    """
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            return redirect(url_for("auth.admin_login", error="not_logged_in"))
        if not is_admin():
            return redirect(url_for("dashboard.index", error="not_admin"))
        if not current_user.access_allowed:
            _sign_out_deactivated()
            return redirect(url_for("index", error="deactivated"))
        return view_func(*args, **kwargs)

    return wrapper


def super_admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: super admin only (admin_required checks run first)."""
    @wraps(view_func)
    @admin_required
    def wrapper(*args: Any, **kwargs: Any):
        if not is_super_admin():
            return _forbidden()
        return view_func(*args, **kwargs)

    return wrapper


def reporting_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: reporting role or admin. Apply below app_user_required."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not (current_user.is_authenticated and current_user.can_view_reporting()):
            return redirect(url_for("dashboard.index", error="access_denied"))
        return view_func(*args, **kwargs)

    return wrapper


def owned_or_404(model, record_id: int):
    """Load a tenant-owned record; records of other users are indistinguishable from missing ones."""
    record = model.query.filter_by(id=record_id, user_id=current_user.id).first()
    if record is None:
        abort(404)
    return record


def apply_role_change(roles: Iterable[str] | None, role: str, enabled: bool) -> list[str]:
    """
    Return the new role list after toggling one role.

    Rules:
    - granting super_admin also grants admin
    - revoking admin also revokes super_admin
    - result is unique and in canonical order
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    new_roles = set(roles or [])
    if enabled:
        new_roles.add(role)
        if role == ROLE_SUPER_ADMIN:
            new_roles.add(ROLE_ADMIN)
    else:
        new_roles.discard(role)
        if role == ROLE_ADMIN:
            new_roles.discard(ROLE_SUPER_ADMIN)

    return [r for r in ROLES if r in new_roles]
