"""
grocery_pos/seed.py

Seed default store data.

Rules:
- Safe to run multiple times (idempotent).
- Seeds the single SystemSettings row and the default product categories.
- create_superadmin() is the CLI counterpart of POST /auth/seed-superadmin,
  but works even when other users already exist.

NOTE:
- Products are not seeded; the catalogue is store-specific.
"""

from __future__ import annotations

import logging

from .extensions import db
from .models import Category, SystemSettings, User, USER_STATUS_ACTIVE, utcnow
from .notifications.events import ROLE_SUPERADMIN

logger = logging.getLogger(__name__)


DEFAULT_CATEGORIES = [
    ("Food", "Food products and groceries"),
    ("Beverages", "Drinks and liquid refreshments"),
    ("Personal Care", "Personal hygiene and care products"),
    ("Other", "Miscellaneous products"),
]


def seed_defaults() -> None:
    """
    Create the settings row and default categories if they don't exist.

    Existing categories are matched by name and left untouched, except that
    a soft-deleted default is reactivated.
    """
    SystemSettings.get()

    for name, description in DEFAULT_CATEGORIES:
        category = Category.query.filter_by(name=name).first()
        if category is None:
            db.session.add(Category(name=name, description=description, is_active=True))
            logger.info("Seeded category %s", name)
        elif not category.is_active:
            category.is_active = True

    db.session.commit()


def create_superadmin(username: str, email: str, password: str) -> User:
    """Create an approved, active superadmin. Raises ValueError on bad input."""
    username = (username or "").strip()
    email = (email or "").strip().lower()

    if not username or not email or len(password or "") < 6:
        raise ValueError("Username, email and a password of at least 6 characters are required.")
    if User.query.filter((User.username == username) | (User.email == email)).first() is not None:
        raise ValueError("User with this email or username already exists.")

    user = User(
        username=username,
        email=email,
        role=ROLE_SUPERADMIN,
        first_name="System",
        last_name="Administrator",
        status=USER_STATUS_ACTIVE,
        is_approved=True,
        approved_at=utcnow(),
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    logger.info("Superadmin %s created from the command line", username)
    return user
