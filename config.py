"""
Configuration classes for the POS server.

Config is read at import time from environment variables (SECRET_KEY,
DATABASE_URL, LOG_LEVEL, SOCKETIO_*); anything unset falls back to a local
SQLite file and development defaults. TestingConfig swaps in an in-memory
database and turns CSRF off.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'pos.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection (JSON clients send the token as X-CSRFToken)
    WTF_CSRF_ENABLED = True

    APP_NAME = "Grocery Store POS"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Real-time transport (Flask-SocketIO)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "threading")
    SOCKETIO_CORS_ORIGINS = os.environ.get("SOCKETIO_CORS_ORIGINS", "*")

    # Pricing defaults (tax-inclusive prices, Philippine VAT)
    DEFAULT_VAT_RATE = 12
    SENIOR_PWD_DISCOUNT_RATE = "0.20"

    # Security
    MAX_LOGIN_ATTEMPTS = 5

    # Pagination
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100


class TestingConfig(Config):
    """In-memory database, no CSRF. Used by the test-suite."""

    TESTING = True
    SECRET_KEY = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "DEBUG"
    MAX_LOGIN_ATTEMPTS = 3
