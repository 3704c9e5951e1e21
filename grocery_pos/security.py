"""
grocery_pos/security.py

Access control helpers for the POS API.

Key rules:
- UI is never trusted; all permission checks are server-side.
- superadmin: full access.
- manager: catalogue, users (cashiers only for approval), refunds, analytics.
- cashier: checkout, own transactions, own analytics.

This module also provides a global safety net:
- maintenance_guard() blocks mutating requests from non-superadmins while
  maintenance mode is on. Wire it via app.before_request in the app factory.

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask import request
from flask_login import current_user

from .errors import AuthenticationError, MaintenanceModeError, PermissionDenied
from .models import SystemSettings
from .notifications.events import ROLE_MANAGER, ROLE_SUPERADMIN

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Endpoints that stay usable during maintenance (so staff can sign in/out).
MAINTENANCE_ALLOWED_ENDPOINTS = {"auth.login", "auth.logout"}


def has_role(*roles: str) -> bool:
    """Return True if the current user is authenticated and holds one of roles."""
    return bool(current_user.is_authenticated and current_user.role in roles)


def is_superadmin() -> bool:
    return has_role(ROLE_SUPERADMIN)


def is_manager_or_above() -> bool:
    return has_role(ROLE_MANAGER, ROLE_SUPERADMIN)


def roles_required(*roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator factory: authenticated user with one of roles.

    Usage:
        @roles_required("manager", "superadmin")
        def refund(transaction_id): ...
    """
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not current_user.is_authenticated:
                raise AuthenticationError()
            if current_user.role not in roles:
                raise PermissionDenied()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


def manager_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: manager or superadmin."""
    return roles_required(ROLE_MANAGER, ROLE_SUPERADMIN)(view_func)


def superadmin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: superadmin only."""
    return roles_required(ROLE_SUPERADMIN)(view_func)


def maintenance_guard() -> None:
    """
    Global guard: while maintenance mode is on, only superadmins may mutate.

    Raises MaintenanceModeError (503) for blocked requests.
    """
    if request.method not in MUTATING_METHODS:
        return None

    endpoint = (request.endpoint or "").strip()
    if endpoint in MAINTENANCE_ALLOWED_ENDPOINTS:
        return None

    if is_superadmin():
        return None

    settings = SystemSettings.query.order_by(SystemSettings.id.asc()).first()
    if settings is not None and settings.maintenance_mode:
        raise MaintenanceModeError(settings.maintenance_message or None)

    return None
