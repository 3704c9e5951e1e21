"""
grocery_pos/blueprints/analytics/__init__.py

Blueprint package export.

IMPORTANT:
- Must expose analytics_bp for app factory registration.
- Keep import minimal to avoid side effects.
"""

from __future__ import annotations

from .routes import analytics_bp  # noqa: F401
