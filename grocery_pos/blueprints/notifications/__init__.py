"""Notifications blueprint."""

from .routes import notifications_bp  # noqa: F401
