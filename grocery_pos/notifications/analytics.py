"""
Analytics push updates.

Audience:
- analytics:update         -> role-manager, role-superadmin
- cashier analytics        -> user-<cashierId> (analytics:update),
                              role-manager, role-superadmin (cashier:analytics:update + cashierId)
- manager:analytics:update -> role-manager, role-superadmin
"""

from __future__ import annotations

from typing import Any, Dict

from . import events
from .hub import ConnectionHub

OVERSIGHT_ROLES = (events.ROLE_MANAGER, events.ROLE_SUPERADMIN)


def _stamped(data: Dict[str, Any], timestamp: Any) -> Dict[str, Any]:
    payload = dict(data)
    payload["timestamp"] = events.iso_timestamp(timestamp or payload.get("timestamp"))
    return payload


def emit_analytics_update(hub: ConnectionHub, data: Dict[str, Any], timestamp: Any = None) -> Dict[str, Any]:
    payload = _stamped(data, timestamp)
    hub.emit_to_roles(OVERSIGHT_ROLES, events.EVENT_ANALYTICS_UPDATE, payload)
    return payload


def emit_cashier_analytics_update(
    hub: ConnectionHub, cashier_id: Any, data: Dict[str, Any], timestamp: Any = None
) -> Dict[str, Any]:
    payload = _stamped(data, timestamp)
    hub.emit_to_user(cashier_id, events.EVENT_ANALYTICS_UPDATE, payload)

    oversight = {"cashierId": str(cashier_id), **payload}
    hub.emit_to_roles(OVERSIGHT_ROLES, events.EVENT_CASHIER_ANALYTICS_UPDATE, oversight)
    return payload


def emit_manager_analytics_update(
    hub: ConnectionHub, data: Dict[str, Any], timestamp: Any = None
) -> Dict[str, Any]:
    payload = _stamped(data, timestamp)
    hub.emit_to_roles(OVERSIGHT_ROLES, events.EVENT_MANAGER_ANALYTICS_UPDATE, payload)
    return payload
