"""
grocery_pos/sockets.py

Socket.IO connection handlers.

Room membership is decided here, never by the client:
- on connect, an authenticated user joins role-<role> and user-<id>
- join-role-room / join-user-room (sent by clients after reconnects) re-join
  the caller's OWN rooms; requests for other rooms are ignored
- anonymous connections are refused
"""

from __future__ import annotations

import logging

from flask import request
from flask_login import current_user
from flask_socketio import SocketIO, join_room

from .notifications.events import role_room, user_room

logger = logging.getLogger(__name__)


def _join_own_rooms() -> None:
    join_room(role_room(current_user.role))
    join_room(user_room(current_user.id))


def register_socket_handlers(socketio: SocketIO) -> None:
    """Attach connection handlers to the app's SocketIO instance."""

    @socketio.on("connect")
    def handle_connect(auth=None):
        if not current_user.is_authenticated:
            logger.info("Rejected anonymous socket connection %s", request.sid)
            return False
        _join_own_rooms()
        logger.info("Client connected: %s (user %s, role %s)", request.sid, current_user.id, current_user.role)
        return None

    @socketio.on("disconnect")
    def handle_disconnect(*args):
        logger.info("Client disconnected: %s", request.sid)

    @socketio.on("join-role-room")
    def handle_join_role_room(role):
        if not current_user.is_authenticated:
            return
        if role != current_user.role:
            logger.warning("User %s asked to join role-%s; ignored", current_user.id, role)
            return
        join_room(role_room(current_user.role))

    @socketio.on("join-user-room")
    def handle_join_user_room(user_id):
        if not current_user.is_authenticated:
            return
        if str(user_id) != str(current_user.id):
            logger.warning("User %s asked to join user-%s; ignored", current_user.id, user_id)
            return
        join_room(user_room(current_user.id))
