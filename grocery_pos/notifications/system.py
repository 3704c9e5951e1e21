"""System-wide notifications (broadcast to every connected client)."""

from __future__ import annotations

import logging
from typing import Any, Dict

from . import events
from .hub import ConnectionHub

logger = logging.getLogger(__name__)


def emit_maintenance_mode_update(
    hub: ConnectionHub,
    *,
    maintenance_mode: bool,
    maintenance_message: str | None = None,
    updated_at: Any = None,
    timestamp: Any = None,
) -> Dict[str, Any]:
    notification = {
        "type": events.MAINTENANCE_MODE_UPDATE,
        "data": {
            "maintenanceMode": bool(maintenance_mode),
            "maintenanceMessage": maintenance_message,
            "updatedAt": events.iso_timestamp(updated_at),
        },
        "timestamp": events.iso_timestamp(timestamp),
    }
    hub.emit_to_all(events.EVENT_SYSTEM_MAINTENANCE, notification)

    logger.info(
        "Maintenance mode %s - notification sent to all users",
        "enabled" if maintenance_mode else "disabled",
    )
    return notification
