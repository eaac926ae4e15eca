"""
bokhald/audit.py

Activity logging helper utilities.

Goals:
- Capture WHO did WHAT, with optional BEFORE/AFTER snapshots of the entity touched.
- Store an email snapshot to preserve identity even if the account is deleted later.
- Store IP address for traceability.

IMPORTANT:
- This helper ADDS ActivityLog entries to the current SQLAlchemy session.
  The calling route controls transaction boundaries (commit/rollback).
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import ActivityLog, User


def _safe_str(value: Any) -> Optional[str]:
    """
    Convert a value to a stable string representation suitable for JSON and DB storage.

    Decimal/date/datetime become their str(); None stays None.
    """
    if value is None:
        return None
    try:
        return str(value)
    except Exception:
        return repr(value)


def serialize_model(instance: Any, exclude: tuple[str, ...] = ("password_hash",)) -> Dict[str, Optional[str]]:
    """
    Convert a SQLAlchemy model instance to a dict snapshot based on table columns.

    Captures only scalar column values (not relationships). Secrets are excluded.
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        if column.name in exclude:
            continue
        data[column.name] = _safe_str(getattr(instance, column.name))
    return data


def log_action(
    action: str,
    details: Optional[Dict[str, Any]] = None,
    *,
    entity: Any = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    actor: Optional[User] = None,
) -> ActivityLog:
    """
    Add an ActivityLog entry to the current db session.

    Parameters:
        action: short machine name, e.g. "invoice_created"
        details: free-form JSON-serializable dict
        entity: model instance the action touched (type and id are recorded)
        before/after: snapshots from serialize_model()
        actor: defaults to current_user; pass explicitly where nobody is signed in (signup)

    SECURITY NOTE:
    - request.remote_addr is as Flask sees it. Behind a reverse proxy configure ProxyFix.
    """
    if not action:
        raise ValueError("log_action requires an action name.")

    if actor is None and has_request_context() and current_user.is_authenticated:
        actor = current_user

    payload: Dict[str, Any] = dict(details or {})
    if entity is not None:
        entity_id = getattr(entity, "id", None)
        if entity_id is None:
            raise ValueError("log_action entity must have an 'id' attribute (after flush).")
        payload["entity_type"] = entity.__class__.__name__
        payload["entity_id"] = int(entity_id)
    if before:
        payload["before"] = before
    if after:
        payload["after"] = after

    entry = ActivityLog(
        user_id=actor.id if actor is not None else None,
        user_email=actor.email if actor is not None else None,
        action=str(action),
        details=json.dumps(payload, ensure_ascii=False, default=str) if payload else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry
