"""Settings blueprint."""

from .routes import settings_bp  # noqa: F401
