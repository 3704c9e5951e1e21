"""
grocery_pos/errors.py

API error types and JSON error handlers.

Every error leaves the API in the same envelope:

    {"success": false, "message": "...", "errors": {...}}

Routes raise APIError subclasses; they are never caught inside a route.
The handlers roll back whatever the failed request left in the session.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .extensions import db

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base class for errors rendered as a JSON response."""

    status_code = 400
    default_message = "Bad request."

    def __init__(self, message: str | None = None, errors: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors


class ValidationError(APIError):
    status_code = 400
    default_message = "Validation failed."


class AuthenticationError(APIError):
    status_code = 401
    default_message = "Authentication required."


class PermissionDenied(APIError):
    status_code = 403
    default_message = "You do not have permission to perform this action."


class NotFound(APIError):
    status_code = 404
    default_message = "Resource not found."


class Conflict(APIError):
    status_code = 409
    default_message = "Resource already exists."


class MaintenanceModeError(APIError):
    status_code = 503
    default_message = "System is currently under maintenance."


def error_response(message: str, status_code: int, errors: Optional[Dict[str, Any]] = None):
    """Build the JSON error envelope."""
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return jsonify(body), status_code


def register_error_handlers(app: Flask) -> None:
    """Render APIError and HTTPException as JSON."""

    @app.errorhandler(APIError)
    def _handle_api_error(exc: APIError):
        db.session.rollback()
        return error_response(exc.message, exc.status_code, exc.errors)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        return error_response(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(500)
    def _handle_server_error(exc):
        db.session.rollback()
        logger.exception("Unhandled server error: %s", exc)
        return error_response("Internal server error.", 500)
