"""
grocery_pos/blueprints/products/__init__.py

Blueprint package export.

IMPORTANT:
- Must expose products_bp for app factory registration.
- Keep import minimal to avoid side effects.
"""

from __future__ import annotations

from .routes import products_bp  # noqa: F401
