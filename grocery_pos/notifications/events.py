"""
Event vocabulary shared by the hub, the builders and the socket handlers.

Wire names and room names are a client contract: do not rename.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

# Roles (also the suffix of role rooms)
ROLE_SUPERADMIN = "superadmin"
ROLE_MANAGER = "manager"
ROLE_CASHIER = "cashier"
ROLES = (ROLE_SUPERADMIN, ROLE_MANAGER, ROLE_CASHIER)

# Notification types (payload "type" field)
SECURITY_ALERT = "security_alert"
SESSION_TERMINATED = "session_terminated"
LOGIN_ACTIVITY = "login_activity"
NEW_USER_REGISTRATION = "new_user_registration"
USER_APPROVAL = "user_approval"
PENDING_APPROVALS_UPDATE = "pending_approvals_update"
TRANSACTION_REFUND = "transaction_refund"
LOW_STOCK_ALERT = "low_stock_alert"
MAINTENANCE_MODE_UPDATE = "maintenance_mode_update"

# Wire event names (socket message names)
EVENT_NOTIFICATION = "notification"
EVENT_SECURITY_ALERT = "security_alert"
EVENT_SESSION_TERMINATED = "session_terminated"
EVENT_LOGIN_ACTIVITY = "login_activity"
EVENT_PENDING_APPROVALS_UPDATE = "pending_approvals_update"
EVENT_LOW_STOCK_UPDATE = "lowStockUpdate"
EVENT_SYSTEM_MAINTENANCE = "system:maintenance"
EVENT_ANALYTICS_UPDATE = "analytics:update"
EVENT_MANAGER_ANALYTICS_UPDATE = "manager:analytics:update"
EVENT_CASHIER_ANALYTICS_UPDATE = "cashier:analytics:update"

# Security alert kinds
ALERT_SUSPICIOUS_LOGIN = "suspicious_login"
ALERT_CONCURRENT_LOGIN = "concurrent_login"
ALERT_SESSION_TERMINATED = "session_terminated"

# Session termination reasons
REASON_CONCURRENT_LOGIN = "concurrent_login"
REASON_MANUAL_LOGOUT = "manual_logout"
REASON_SECURITY_BREACH = "security_breach"

# Low stock alert levels
ALERT_CRITICAL = "critical"
ALERT_WARNING = "warning"


def role_room(role: str) -> str:
    """Room joined by every connected client of a role."""
    return f"role-{role}"


def user_room(user_id: Any) -> str:
    """Room joined by every connected client of one user."""
    return f"user-{user_id}"


def iso_timestamp(value: Any = None) -> str:
    """
    ISO-8601 UTC timestamp with millisecond precision and a Z suffix.

    - None: current time
    - datetime: converted (naive datetimes are taken as UTC)
    - str: passed through unchanged (caller-provided)
    """
    if isinstance(value, str) and value:
        return value
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    else:
        moment = datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
