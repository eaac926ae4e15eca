"""
bokhald/__init__.py

Flask application factory for bókhald, bookkeeping and invoicing for small Icelandic businesses.

Requirements:
- SQLAlchemy + migrations, SQLite for development, PostgreSQL-ready.
- UI is never trusted; server-side access control is enforced.

Navigation:
- Tenants see: Dashboard, Entries, Invoices, Reporting (reporting role), Settings.
- Admins see: User management, Activity log (super admin).
Items are filtered for visibility, BUT all permissions are enforced server-side.
"""

from __future__ import annotations

import click
from flask import Flask, flash, redirect, render_template, request, url_for
from flask_login import current_user

from .extensions import csrf, db, login_manager, migrate
from .models import User
from .utils import format_isk, invoice_row_class

# Blueprint imports kept inside create_app() to reduce import side effects.


# -------------------------------------------------------------------
# NAVIGATION STRUCTURE (UI visibility only; security enforced in routes)
# -------------------------------------------------------------------

TENANT_NAV = [
    {"label": "Dashboard", "endpoint": "dashboard.index"},
    {"label": "Entries", "endpoint": "entries.list_entries"},
    {"label": "Invoices", "endpoint": "invoices.list_invoices"},
    {"label": "Reporting", "endpoint": "dashboard.reporting", "requires": "reporting"},
    {"label": "Settings", "endpoint": "settings.company"},
]

ADMIN_NAV = [
    {"label": "User management", "endpoint": "admin.users"},
    {"label": "Activity log", "endpoint": "admin.activity_log", "requires": "super_admin"},
]

# Messages for ?error= redirects issued by the access guards
ERROR_MESSAGES = {
    "access_denied": "You don't have permission to view this page.",
    "deactivated": "This account has been deactivated.",
    "not_logged_in": "You must be logged in as an administrator.",
    "not_admin": "You are not an administrator.",
}


def flash_error_param() -> None:
    """Flash the message for a guard redirect (?error=...), if any."""
    code = (request.args.get("error") or "").strip()
    if code:
        flash(ERROR_MESSAGES.get(code, "An unknown error occurred."), "danger")


def _visible_nav() -> list[dict]:
    if not current_user.is_authenticated:
        return []

    if current_user.is_admin:
        items = ADMIN_NAV
    else:
        items = TENANT_NAV

    visible = []
    for item in items:
        requires = item.get("requires")
        if requires == "reporting" and not current_user.can_view_reporting():
            continue
        if requires == "super_admin" and not current_user.is_super_admin:
            continue
        visible.append(item)
    return visible


def create_app(config_object: str = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.dashboard import dashboard_bp
    from .blueprints.entries import entries_bp
    from .blueprints.invoices import invoices_bp
    from .blueprints.settings import settings_bp
    from .blueprints.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(entries_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(admin_bp)

    # ----------------------------------------------------------------------
    # Templates
    # ----------------------------------------------------------------------
    app.jinja_env.filters["isk"] = format_isk
    app.jinja_env.globals["invoice_row_class"] = invoice_row_class

    @app.context_processor
    def inject_globals():
        """
        Inject navigation filtered by user.

        SECURITY NOTE:
        - This only filters visibility. Routes enforce permissions.
        """
        return {"config": app.config, "nav_items": _visible_nav()}

    # ----------------------------------------------------------------------
    # Error pages
    # ----------------------------------------------------------------------
    @app.errorhandler(403)
    def forbidden(_error):
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(_error):
        return render_template("errors/404.html"), 404

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("create-admin")
    @click.argument("email")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--super", "super_admin", is_flag=True, help="Also grant the super_admin role.")
    def create_admin_command(email, password, super_admin):
        """Create or promote an administrator account."""
        from .seed import create_admin_user

        user = create_admin_user(email, password, super_admin=super_admin)
        click.echo(f"Administrator {user.email} ready ({', '.join(user.roles)}).")

    @app.cli.command("mark-overdue")
    def mark_overdue_command():
        """Mark unpaid invoices past their due date as overdue."""
        from .seed import mark_overdue_invoices

        count = mark_overdue_invoices()
        click.echo(f"{count} invoice(s) marked overdue.")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Home: redirect to dashboard or login."""
        flash_error_param()
        if current_user.is_authenticated:
            return redirect(url_for("dashboard.index"))
        return redirect(url_for("auth.login"))

    return app
