"""
Authentication Routes

Provides:
- /auth/register        (cashier self-registration, pending approval)
- /auth/login
- /auth/logout
- /auth/me
- /auth/profile          (self-service name/email edit)
- /auth/change-password  (rotates the session token)
- /auth/csrf-token
- /auth/seed-superadmin (first system bootstrap)

Rules:
- Only approved AND active users may log in.
- One live session per user: a new login rotates the session token,
  which invalidates the previous cookie and raises a security alert.
- Repeated failed logins raise a suspicious_login alert.
"""

from __future__ import annotations

import logging
import re

from flask import Blueprint, current_app, request
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...audit import log_action, serialize_model
from ...errors import AuthenticationError, Conflict, PermissionDenied, ValidationError
from ...extensions import db
from ...models import User, USER_STATUS_ACTIVE, USER_STATUS_INACTIVE, utcnow
from ...notifications import alerts, get_hub, security
from ...notifications.events import (
    ALERT_SESSION_TERMINATED,
    ALERT_SUSPICIOUS_LOGIN,
    ROLE_CASHIER,
    ROLE_MANAGER,
    ROLE_SUPERADMIN,
)
from ...utils import api_response, clean_str, json_body

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


def validate_account_fields(data: dict, require_password: bool = True) -> dict:
    """Validate username/email/password/names. Returns cleaned values."""
    cleaned = {
        "username": clean_str(data.get("username")),
        "email": clean_str(data.get("email")).lower(),
        "password": str(data.get("password") or ""),
        "first_name": clean_str(data.get("first_name")),
        "last_name": clean_str(data.get("last_name")),
    }

    errors = {}
    if not 3 <= len(cleaned["username"]) <= 30:
        errors["username"] = "Username must be 3-30 characters long."
    if not EMAIL_RE.match(cleaned["email"]):
        errors["email"] = "Please enter a valid email."
    if require_password and len(cleaned["password"]) < 6:
        errors["password"] = "Password must be at least 6 characters long."
    if not cleaned["first_name"] or len(cleaned["first_name"]) > 50:
        errors["first_name"] = "First name is required (max 50 characters)."
    if not cleaned["last_name"] or len(cleaned["last_name"]) > 50:
        errors["last_name"] = "Last name is required (max 50 characters)."

    if errors:
        raise ValidationError(errors=errors)
    return cleaned


def ensure_unique_account(username: str, email: str, exclude_user_id: int | None = None) -> None:
    query = User.query.filter((User.username == username) | (User.email == email))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first() is not None:
        raise Conflict("User with this email or username already exists.")


def pending_approvals_count() -> int:
    return User.query.filter(User.is_approved.is_(False), User.status != "deleted").count()


def broadcast_pending_approvals() -> None:
    """Refresh the pending-approval badge for both approver roles."""
    hub = get_hub()
    count = pending_approvals_count()
    for role in (ROLE_SUPERADMIN, ROLE_MANAGER):
        alerts.emit_pending_approvals_update(hub, role, count)


def _client_info() -> tuple[str | None, str | None]:
    return request.remote_addr, (request.user_agent.string or None)


# ============================================================
# REGISTER
# ============================================================

@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Cashier self-registration.

    The account is inactive and unapproved until a manager or
    superadmin approves it.
    """
    fields = validate_account_fields(json_body())
    ensure_unique_account(fields["username"], fields["email"])

    user = User(
        username=fields["username"],
        email=fields["email"],
        role=ROLE_CASHIER,
        first_name=fields["first_name"],
        last_name=fields["last_name"],
        status=USER_STATUS_INACTIVE,
        is_approved=False,
    )
    user.set_password(fields["password"])

    db.session.add(user)
    db.session.flush()
    log_action(user, "CREATE", after=serialize_model(user))
    db.session.commit()

    alerts.emit_new_user_registration(get_hub(), user.to_event_dict())
    broadcast_pending_approvals()

    return api_response(
        {"user": user.to_dict()},
        "Cashier account created successfully. Please wait for admin approval.",
        201,
    )


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate a user by username or email.

    - Unknown user / wrong password: 401; failures are counted.
    - Unapproved or inactive account: 403.
    - Existing session: terminated (security alert + forced logout event).
    """
    data = json_body()
    identifier = clean_str(data.get("username") or data.get("email"))
    password = str(data.get("password") or "")
    ip_address, user_agent = _client_info()
    hub = get_hub()

    if not identifier or not password:
        raise ValidationError("Username and password are required.")

    user = User.query.filter(
        (User.username == identifier) | (User.email == identifier.lower())
    ).first()

    if user is None:
        raise AuthenticationError("Invalid credentials.")

    if not user.check_password(password):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        db.session.commit()

        if user.failed_login_attempts >= current_app.config["MAX_LOGIN_ATTEMPTS"]:
            security.emit_security_alert(
                hub,
                alert_type=ALERT_SUSPICIOUS_LOGIN,
                user_id=user.id,
                username=user.username,
                email=user.email,
                ip_address=ip_address,
                user_agent=user_agent,
                message=f"{user.failed_login_attempts} failed login attempts for {user.username}",
                metadata={"failedAttempts": user.failed_login_attempts},
            )
        raise AuthenticationError("Invalid credentials.")

    if not user.is_approved or user.status != USER_STATUS_ACTIVE:
        raise PermissionDenied("Account is not approved or inactive.")

    had_session = bool(user.session_token)
    is_new_device = bool(user.last_user_agent) and user.last_user_agent != user_agent
    previous_device = {"ipAddress": user.last_login_ip, "userAgent": user.last_user_agent}

    user.rotate_session_token()
    user.failed_login_attempts = 0
    user.last_login = utcnow()
    user.last_login_ip = ip_address
    user.last_user_agent = (user_agent or "")[:255] or None
    db.session.commit()

    login_user(user)

    if had_session:
        security.emit_security_alert(
            hub,
            alert_type=ALERT_SESSION_TERMINATED,
            user_id=user.id,
            username=user.username,
            email=user.email,
            ip_address=ip_address,
            user_agent=user_agent,
            message=f"Previous session of {user.username} terminated by a new login",
            metadata={"newDeviceInfo": {"ipAddress": ip_address, "userAgent": user_agent},
                      "previousDeviceInfo": previous_device},
        )

    security.emit_login_activity(
        hub,
        user_id=user.id,
        username=user.username,
        email=user.email,
        ip_address=ip_address,
        user_agent=user_agent,
        is_new_device=is_new_device,
    )

    return api_response({"user": user.to_dict()}, "Login successful.")


# ============================================================
# LOGOUT / ME / CSRF
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user and invalidate the session token."""
    user = current_user._get_current_object()
    user.session_token = None
    db.session.commit()
    logout_user()
    return api_response(None, "Logged out.")


@auth_bp.route("/me")
@login_required
def me():
    return api_response({"user": current_user.to_dict()})


@auth_bp.route("/profile", methods=["PUT", "PATCH"])
@login_required
def update_profile():
    """Self-service edit of first/last name and email. Role and status stay untouched."""
    data = json_body()
    user = current_user._get_current_object()
    before = serialize_model(user)

    errors = {}
    for field in ("first_name", "last_name"):
        if field in data:
            value = clean_str(data.get(field))
            if not value or len(value) > 50:
                errors[field] = "Required (max 50 characters)."
            else:
                setattr(user, field, value)

    if "email" in data:
        email = clean_str(data.get("email")).lower()
        if not EMAIL_RE.match(email):
            errors["email"] = "Please enter a valid email."
        elif email != user.email:
            if User.query.filter(User.email == email, User.id != user.id).first() is not None:
                raise Conflict("Email is already taken.")
            user.email = email

    if errors:
        raise ValidationError(errors=errors)

    log_action(user, "UPDATE", before=before, after=serialize_model(user))
    db.session.commit()

    return api_response({"user": user.to_dict()}, "Profile updated successfully.")


@auth_bp.route("/change-password", methods=["PUT", "POST"])
@login_required
def change_password():
    """
    Change the caller's password.

    The current password must be supplied. The session token is rotated,
    so every other session of the account stops loading; this request's
    session is re-issued with the new token.
    """
    data = json_body()
    current_password = str(data.get("current_password") or "")
    new_password = str(data.get("new_password") or "")

    if not current_password or not new_password:
        raise ValidationError("Please provide current password and new password.")

    user = current_user._get_current_object()
    if not user.check_password(current_password):
        raise ValidationError("Current password is incorrect.", {"current_password": "Incorrect."})
    if len(new_password) < 6:
        raise ValidationError(errors={"new_password": "Password must be at least 6 characters long."})

    user.set_password(new_password)
    user.rotate_session_token()
    log_action(user, "PASSWORD_CHANGE")
    db.session.commit()

    login_user(user)
    logger.info("Password changed for user %s", user.username)

    return api_response(None, "Password changed successfully.")


@auth_bp.route("/csrf-token")
def csrf_token():
    """CSRF token for JSON clients (send back as X-CSRFToken)."""
    return api_response({"csrf_token": generate_csrf()})


# ============================================================
# SEED FIRST SUPERADMIN (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-superadmin", methods=["POST"])
def seed_superadmin():
    """
    Bootstrap the FIRST superadmin of the system.

    Blocked as soon as any user exists.
    """
    if User.query.count() > 0:
        raise PermissionDenied("A user already exists in the system.")

    fields = validate_account_fields(json_body())

    user = User(
        username=fields["username"],
        email=fields["email"],
        role=ROLE_SUPERADMIN,
        first_name=fields["first_name"],
        last_name=fields["last_name"],
        status=USER_STATUS_ACTIVE,
        is_approved=True,
        approved_at=utcnow(),
    )
    user.set_password(fields["password"])

    db.session.add(user)
    db.session.flush()
    log_action(user, "CREATE", after=serialize_model(user))
    db.session.commit()

    return api_response({"user": user.to_dict()}, "Superadmin created. Please log in.", 201)
