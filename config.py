"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
bootstrap admin emails and logging. It uses environment variables for sensitive information and defaults for
development. In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _email_list(name: str) -> list[str]:
    """Comma separated emails from the environment, lower-cased."""
    raw = os.environ.get(name, "")
    return [e.strip().lower() for e in raw.split(",") if e.strip()]


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'bokhald.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for forms
    WTF_CSRF_ENABLED = True

    # App UI name (used in templates)
    APP_NAME = "bókhald"

    # Accounts created through signup with these emails get admin roles
    ADMIN_EMAILS = _email_list("ADMIN_EMAILS")
    SUPER_ADMIN_EMAILS = _email_list("SUPER_ADMIN_EMAILS")

    # Invoice defaults
    DEFAULT_VAT_RATE = int(os.environ.get("DEFAULT_VAT_RATE", "24"))
    INVOICE_DUE_DAYS = int(os.environ.get("INVOICE_DUE_DAYS", "14"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    """In-memory database, no CSRF tokens."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    SECRET_KEY = "test"
    ADMIN_EMAILS = ["admin@example.com"]
    SUPER_ADMIN_EMAILS = ["root@example.com"]
    LOG_LEVEL = "DEBUG"
