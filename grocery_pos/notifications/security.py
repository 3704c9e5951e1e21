"""
Security notifications: alerts, forced logouts, login activity.

Audience:
- security_alert     -> role-manager, role-superadmin
                        (+ session_terminated to user-<id> for session_terminated alerts)
- session_terminated -> user-<id>
- login_activity     -> role-superadmin
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from . import events
from .hub import ConnectionHub

logger = logging.getLogger(__name__)

SESSION_TERMINATION_MESSAGES = {
    events.REASON_CONCURRENT_LOGIN: (
        "Your session has been terminated due to a new login from another device. Please log in again."
    ),
    events.REASON_MANUAL_LOGOUT: "You have been logged out. Please log in again.",
    events.REASON_SECURITY_BREACH: "Your session has been terminated for security reasons. Please log in again.",
}
DEFAULT_TERMINATION_MESSAGE = "Your session has been terminated. Please log in again."

FORCED_LOGOUT_MESSAGE = "Your session has been terminated due to a new login from another device"


def session_termination_message(reason: str) -> str:
    return SESSION_TERMINATION_MESSAGES.get(reason, DEFAULT_TERMINATION_MESSAGE)


def emit_security_alert(
    hub: ConnectionHub,
    *,
    alert_type: str,
    user_id: Any,
    username: str,
    email: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    message: str | None = None,
    metadata: Optional[Dict[str, Any]] = None,
    timestamp: Any = None,
) -> Dict[str, Any]:
    """Notify managers and superadmins of a security event."""
    notification = {
        "type": events.SECURITY_ALERT,
        "alertType": alert_type,
        "severity": "high" if alert_type == events.ALERT_SUSPICIOUS_LOGIN else "medium",
        "userId": str(user_id),
        "username": username,
        "email": email,
        "ipAddress": ip_address,
        "userAgent": user_agent,
        "message": message,
        "metadata": metadata,
        "timestamp": events.iso_timestamp(timestamp),
    }

    hub.emit_to_roles(
        (events.ROLE_MANAGER, events.ROLE_SUPERADMIN), events.EVENT_SECURITY_ALERT, notification
    )

    if alert_type == events.ALERT_SESSION_TERMINATED:
        hub.emit_to_user(
            user_id,
            events.EVENT_SESSION_TERMINATED,
            {
                "type": "forced_logout",
                "message": FORCED_LOGOUT_MESSAGE,
                "timestamp": notification["timestamp"],
                "metadata": metadata,
            },
        )

    logger.info("Security alert emitted: %s for user %s", alert_type, username)
    return notification


def emit_session_termination(
    hub: ConnectionHub, user_id: Any, reason: str, timestamp: Any = None
) -> Dict[str, Any]:
    """Tell one user that their session is gone."""
    notification = {
        "type": events.SESSION_TERMINATED,
        "reason": reason,
        "message": session_termination_message(reason),
        "timestamp": events.iso_timestamp(timestamp),
        "requiresReauth": True,
    }
    hub.emit_to_user(user_id, events.EVENT_SESSION_TERMINATED, notification)

    logger.info("Session termination sent to user %s (reason: %s)", user_id, reason)
    return notification


def emit_login_activity(
    hub: ConnectionHub,
    *,
    user_id: Any,
    username: str,
    email: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    is_new_device: bool = False,
    timestamp: Any = None,
) -> Dict[str, Any]:
    """Login monitoring feed for superadmins."""
    notification = {
        "type": events.LOGIN_ACTIVITY,
        "userId": str(user_id),
        "username": username,
        "email": email,
        "ipAddress": ip_address,
        "userAgent": user_agent,
        "isNewDevice": bool(is_new_device),
        "timestamp": events.iso_timestamp(timestamp),
    }
    hub.emit_to_role(events.ROLE_SUPERADMIN, events.EVENT_LOGIN_ACTIVITY, notification)

    logger.info("Login activity sent: user %s from %s", username, ip_address)
    return notification
