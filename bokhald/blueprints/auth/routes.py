"""
Authentication Routes

Provides:
- /auth/login        (tenants)
- /auth/admin-login  (administrators)
- /auth/signup
- /auth/logout

Rules:
- Only accounts with access allowed may sign in.
- Passwords are validated via werkzeug password hashes.
- Signup creates the account, its company settings and a user_signup activity log
  in one transaction. Configured bootstrap emails receive admin roles.
"""

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import (
    current_user,
    login_required,
    login_user,
    logout_user,
)

from ... import flash_error_param
from ...audit import log_action
from ...extensions import db
from ...models import PLANS, ROLE_ADMIN, ROLE_SUPER_ADMIN, CompanySettings, User
from ...utils import form_str, safe_next_url
from ...validation import validate_signup


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _authenticate(email: str, password: str) -> User | None:
    """Return the user for valid credentials, flashing the reason otherwise."""
    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        current_app.logger.warning("Failed sign-in for %s from %s", email, request.remote_addr)
        flash("Invalid email or password.", "danger")
        return None

    if not user.access_allowed:
        current_app.logger.warning("Sign-in refused for deactivated account %s", email)
        flash("This account has been deactivated.", "danger")
        return None

    return user


def _roles_for_new_account(email: str) -> list[str]:
    if email in current_app.config.get("SUPER_ADMIN_EMAILS", []):
        return [ROLE_SUPER_ADMIN, ROLE_ADMIN]
    if email in current_app.config.get("ADMIN_EMAILS", []):
        return [ROLE_ADMIN]
    return []


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    """Authenticate a tenant."""
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.index"))

    if request.method == "POST":
        email = form_str("email").lower()
        password = request.form.get("password", "")

        user = _authenticate(email, password)
        if user is None:
            return render_template("auth/login.html", email=email)

        login_user(user)
        current_app.logger.info("User %s signed in", user.email)

        next_url = safe_next_url(request.args.get("next"), "dashboard.index")
        return redirect(next_url)

    flash_error_param()
    return render_template("auth/login.html", email="")


@auth_bp.route("/admin-login", methods=["GET", "POST"])
def admin_login():
    """Authenticate an administrator."""
    if current_user.is_authenticated and current_user.is_admin:
        return redirect(url_for("admin.users"))

    if request.method == "POST":
        email = form_str("email").lower()
        password = request.form.get("password", "")

        user = _authenticate(email, password)
        if user is None:
            return render_template("auth/admin_login.html", email=email)

        if not user.is_admin:
            current_app.logger.warning("Non-admin %s tried the admin login", email)
            flash("You are not an administrator.", "danger")
            return render_template("auth/admin_login.html", email=email)

        login_user(user)
        current_app.logger.info("Administrator %s signed in", user.email)
        return redirect(url_for("admin.users"))

    flash_error_param()
    return render_template("auth/admin_login.html", email="")


# ============================================================
# SIGNUP
# ============================================================

@auth_bp.route("/signup", methods=["GET", "POST"])
def signup():
    """Create a new account (tenant, or admin for configured bootstrap emails)."""
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.index"))

    if request.method == "POST":
        email = form_str("email").lower()
        kennitala = form_str("kennitala")
        password = request.form.get("password", "")
        confirm_password = request.form.get("confirm_password", "")
        plan = form_str("plan") or "pro"

        errors = validate_signup(email, kennitala, password, confirm_password, plan)
        if not errors and User.query.filter_by(email=email).first():
            errors.append("An account with this email already exists.")

        if errors:
            for message in errors:
                flash(message, "danger")
            return render_template("auth/signup.html", plans=PLANS, form=request.form)

        roles = _roles_for_new_account(email)
        user = User(
            email=email,
            kennitala=kennitala,
            roles=roles,
            access_allowed=True,
            plan=plan,
        )
        user.set_password(password)

        # Transaction: add -> flush (id exists) -> settings + audit -> commit (once)
        db.session.add(user)
        db.session.flush()
        CompanySettings.for_user(user.id)
        log_action(
            "user_signup",
            {"message": f"New user signed up: {email}", "plan": plan},
            actor=user,
        )
        db.session.commit()

        current_app.logger.info("New account %s (plan=%s, roles=%s)", email, plan, roles)
        flash("Account created. You can now log in.", "success")
        return redirect(url_for("auth.admin_login" if roles else "auth.login"))

    return render_template("auth/signup.html", plans=PLANS, form={})


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout")
@login_required
def logout():
    """Log out the current user."""
    logout_user()
    flash("You have been signed out.", "info")
    return redirect(url_for("auth.login"))
