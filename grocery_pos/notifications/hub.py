"""
grocery_pos/notifications/hub.py

ConnectionHub: the single holder of the live Socket.IO server.

- Constructed once in create_app(), initialized with the Flask-SocketIO
  instance, stored in app.extensions["connection_hub"] and passed explicitly
  to every notification builder.
- Addresses rooms by name only (role-<role>, user-<userId>). Room membership
  is owned by the transport (see grocery_pos/sockets.py).
- Fire-and-forget: no queue, no retry, no acknowledgement. An event emitted
  while a client is offline is lost for that client; the REST endpoints are
  the pull-based fallback.
- Before initialize() every emit logs an error and does nothing.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from .events import role_room, user_room

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "/"


def to_wire(value: Any) -> Any:
    """Make a payload JSON-safe (Decimal -> float, datetime -> ISO string)."""
    if isinstance(value, dict):
        return {key: to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_wire(item) for item in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class ConnectionHub:
    """Role/user/broadcast emit primitives over one Socket.IO server handle."""

    def __init__(self, server: Any = None, namespace: str = DEFAULT_NAMESPACE):
        self._server = server
        self.namespace = namespace

    def initialize(self, server: Any) -> None:
        """Store the transport handle. Last call wins."""
        self._server = server

    @property
    def is_initialized(self) -> bool:
        return self._server is not None

    # -----------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------
    def _participants(self, room: Any) -> int:
        engine = getattr(self._server, "server", None)
        manager = getattr(engine, "manager", None)
        if manager is None:
            return 0
        try:
            return sum(1 for _ in manager.get_participants(self.namespace, room))
        except KeyError:
            # namespace or room never had a member
            return 0

    def connected_clients(self) -> int:
        """Number of connected clients (0 when not initialized)."""
        if not self.is_initialized:
            return 0
        return self._participants(None)

    def has_connected_clients(self) -> bool:
        return self.connected_clients() > 0

    def room_size(self, room: str) -> int:
        if not self.is_initialized:
            return 0
        return self._participants(room)

    # -----------------------------------------------------------------
    # Emit primitives
    # -----------------------------------------------------------------
    def _emit(self, event: str, data: Any, room: str | None = None) -> bool:
        if not self.is_initialized:
            logger.error("Socket.IO not initialized; dropping event %s (room=%s)", event, room)
            return False

        payload = to_wire(data)
        try:
            if room is None:
                self._server.emit(event, payload, namespace=self.namespace)
            else:
                self._server.emit(event, payload, to=room, namespace=self.namespace)
        except Exception:
            # Notifications must never fail the request that triggered them.
            logger.exception("Failed to emit %s (room=%s)", event, room)
            return False
        return True

    def emit_to_role(self, role: str, event: str, data: Any) -> bool:
        """Emit to every client in role-<role>."""
        room = role_room(role)
        logger.debug("Emitting %s to %s (%d members)", event, room, self.room_size(room))
        return self._emit(event, data, room=room)

    def emit_to_user(self, user_id: Any, event: str, data: Any) -> bool:
        """Emit to every client in user-<userId>."""
        room = user_room(user_id)
        logger.debug("Emitting %s to %s", event, room)
        return self._emit(event, data, room=room)

    def emit_to_all(self, event: str, data: Any) -> bool:
        """Broadcast to every connected client."""
        logger.debug("Broadcasting %s", event)
        return self._emit(event, data)

    def emit_to_roles(self, roles: Iterable[str], event: str, data: Any) -> None:
        """emit_to_role() once per distinct role, in the given order."""
        seen = set()
        for role in roles:
            if role in seen:
                continue
            seen.add(role)
            self.emit_to_role(role, event, data)
