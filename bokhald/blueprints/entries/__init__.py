"""
Entries blueprint package.

This file just exposes the Blueprint object to be imported in bokhald.__init__.
The actual routes and logic are in routes.py.
"""

from .routes import entries_bp  # noqa: F401
