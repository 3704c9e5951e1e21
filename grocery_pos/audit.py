"""
grocery_pos/audit.py

Audit trail helpers.

Goals:
- Capture WHO did WHAT to WHICH entity, with BEFORE/AFTER snapshots.
- Store a username snapshot (identity survives renames/deletes).
- Store the client IP.

IMPORTANT:
- log_action() only ADDS an AuditLog row to the current session.
  The calling route owns the commit, so the audit entry and the change
  land in the same transaction.
- Secrets (password hashes, session tokens) are never snapshotted.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog

REDACTED_COLUMNS = {"password_hash", "session_token"}


def _safe_str(value: Any) -> Optional[str]:
    """Stable string form for JSON storage (Decimal, datetime, ...)."""
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """Scalar column snapshot of a model instance (no relationships)."""
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        if column.name in REDACTED_COLUMNS:
            continue
        data[column.name] = _safe_str(getattr(instance, column.name))
    return data


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry for entity (must already have an id; flush first).

    action: CREATE / UPDATE / DELETE / APPROVE / REJECT / REFUND / ...
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    authenticated = has_request_context() and current_user.is_authenticated

    entry = AuditLog(
        user_id=current_user.id if authenticated else None,
        username_snapshot=current_user.username if authenticated else None,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry
