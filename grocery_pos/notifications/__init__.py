"""
Real-time notifications.

- hub.ConnectionHub: emit primitives over the Socket.IO server
- security / alerts / system / analytics: stateless builders taking the hub
  as their first argument

Inside a request, get the application's hub with get_hub().
"""

from __future__ import annotations

from flask import current_app

from .hub import ConnectionHub

HUB_EXTENSION_KEY = "connection_hub"


def get_hub() -> ConnectionHub:
    """The ConnectionHub registered by create_app()."""
    return current_app.extensions[HUB_EXTENSION_KEY]


__all__ = ["ConnectionHub", "HUB_EXTENSION_KEY", "get_hub"]
