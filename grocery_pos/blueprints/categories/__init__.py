"""Categories blueprint."""

from .routes import categories_bp  # noqa: F401
