"""
grocery_pos/blueprints/transactions/__init__.py

Blueprint package export.

IMPORTANT:
- Must expose transactions_bp for app factory registration.
- Keep import minimal to avoid side effects.
"""

from __future__ import annotations

from .routes import transactions_bp  # noqa: F401
