"""
Business notifications delivered on the generic "notification" event.

Audience:
- new_user_registration    -> role-superadmin, role-manager
- user_approval            -> role-superadmin, role-manager
- pending_approvals_update -> role-<role> (caller decides)
- transaction_refund       -> role-manager, role-superadmin, user-<cashierId>
- low_stock_alert          -> role-manager, role-superadmin
                              (+ lowStockUpdate {count} to the same roles)
"""

from __future__ import annotations

from typing import Any, Dict, List

from . import events
from .hub import ConnectionHub

ADMIN_ROLES = (events.ROLE_SUPERADMIN, events.ROLE_MANAGER)
OVERSIGHT_ROLES = (events.ROLE_MANAGER, events.ROLE_SUPERADMIN)


def emit_new_user_registration(
    hub: ConnectionHub, user: Dict[str, Any], timestamp: Any = None
) -> Dict[str, Any]:
    """A cashier registered and waits for approval."""
    notification = {
        "type": events.NEW_USER_REGISTRATION,
        "message": f"New {user.get('role')} registration: {user.get('firstName')} {user.get('lastName')}",
        "user": user,
        "timestamp": events.iso_timestamp(timestamp),
    }
    hub.emit_to_roles(ADMIN_ROLES, events.EVENT_NOTIFICATION, notification)
    return notification


def emit_user_approval(
    hub: ConnectionHub,
    user: Dict[str, Any],
    approved_by: Dict[str, Any],
    timestamp: Any = None,
) -> Dict[str, Any]:
    """A pending account was approved or rejected."""
    outcome = "approved" if user.get("isApproved") else "rejected"
    notification = {
        "type": events.USER_APPROVAL,
        "message": f"User {user.get('firstName')} {user.get('lastName')} has been {outcome}",
        "user": user,
        "approvedBy": approved_by,
        "timestamp": events.iso_timestamp(timestamp),
    }
    hub.emit_to_roles(ADMIN_ROLES, events.EVENT_NOTIFICATION, notification)
    return notification


def emit_pending_approvals_update(
    hub: ConnectionHub, role: str, count: int, timestamp: Any = None
) -> Dict[str, Any]:
    notification = {
        "type": events.PENDING_APPROVALS_UPDATE,
        "count": int(count),
        "timestamp": events.iso_timestamp(timestamp),
    }
    hub.emit_to_role(role, events.EVENT_PENDING_APPROVALS_UPDATE, notification)
    return notification


def emit_transaction_refund(
    hub: ConnectionHub,
    transaction: Dict[str, Any],
    refunded_by: str,
    timestamp: Any = None,
) -> Dict[str, Any]:
    """Refund notice for oversight roles and for the cashier who rang the sale."""
    notification = {
        "type": events.TRANSACTION_REFUND,
        "message": f"Transaction {transaction.get('transactionNumber')} has been refunded",
        "transaction": transaction,
        "refundedBy": refunded_by,
        "timestamp": events.iso_timestamp(timestamp),
    }
    hub.emit_to_roles(OVERSIGHT_ROLES, events.EVENT_NOTIFICATION, notification)

    cashier_id = transaction.get("cashierId")
    if cashier_id not in (None, ""):
        hub.emit_to_user(cashier_id, events.EVENT_NOTIFICATION, notification)
    return notification


def emit_low_stock_alert(
    hub: ConnectionHub,
    products: List[Dict[str, Any]],
    alert_type: str = events.ALERT_WARNING,
    count: int | None = None,
    timestamp: Any = None,
) -> Dict[str, Any]:
    """Low/out-of-stock products, plus the badge counter update."""
    total = len(products) if count is None else int(count)
    notification = {
        "type": events.LOW_STOCK_ALERT,
        "message": f"{total} product(s) require immediate attention",
        "products": products,
        "count": total,
        "alertType": alert_type,
        "timestamp": events.iso_timestamp(timestamp),
    }
    hub.emit_to_roles(OVERSIGHT_ROLES, events.EVENT_NOTIFICATION, notification)
    hub.emit_to_roles(OVERSIGHT_ROLES, events.EVENT_LOW_STOCK_UPDATE, {"count": total})
    return notification
