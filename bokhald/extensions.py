"""
Flask extension instances for bókhald.

Created here without an app and bound in create_app() via init_app(), so models,
routes and the CLI can import them without circular imports.

- db:            Flask-SQLAlchemy (all tenant data and the activity log)
- migrate:       Flask-Migrate, exposes `flask db ...`
- login_manager: session sign-in; anonymous users are sent to the tenant login
- csrf:          every POST form must carry csrf_token()
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()

login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = "Please sign in to continue."
login_manager.login_message_category = "info"
