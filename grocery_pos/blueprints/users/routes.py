"""
User Management (Manager + Superadmin).

Rules enforced:
- superadmin: full user management, any role.
- manager: sees users, approves/rejects CASHIERS only, cannot create or
  edit managers/superadmins.
- Nobody can delete or demote themselves.
- UI never trusted: we validate server-side.

Audit:
- CREATE / UPDATE / DELETE / APPROVE / REJECT logged

Notifications:
- approve/reject -> user_approval + pending_approvals_update
- terminate-session -> session_terminated to the user's room
"""

from __future__ import annotations

from flask import Blueprint, request
from flask_login import current_user, login_required

from ...audit import log_action, serialize_model
from ...errors import NotFound, PermissionDenied, ValidationError
from ...extensions import db
from ...models import USER_STATUS_ACTIVE, USER_STATUS_DELETED, USER_STATUS_INACTIVE, User, utcnow
from ...notifications import alerts, get_hub, security
from ...notifications.events import REASON_SECURITY_BREACH, ROLE_CASHIER, ROLES
from ...security import manager_required
from ...utils import api_response, clean_str, json_body, paginate, parse_bool
from ..auth.routes import broadcast_pending_approvals, ensure_unique_account, validate_account_fields

users_bp = Blueprint("users", __name__, url_prefix="/users")


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None or user.status == USER_STATUS_DELETED:
        raise NotFound("User not found.")
    return user


def _ensure_can_manage(target: User) -> None:
    """Managers may only act on cashiers; superadmins on anyone."""
    if current_user.is_superadmin:
        return
    if target.role != ROLE_CASHIER:
        raise PermissionDenied("Managers can only manage cashier accounts.")


def _validate_role(role: str) -> str:
    role = (role or "").strip().lower()
    if role not in ROLES:
        raise ValidationError("Invalid role.", {"role": f"Must be one of: {', '.join(ROLES)}"})
    if role != ROLE_CASHIER and not current_user.is_superadmin:
        raise PermissionDenied("Only a superadmin can assign this role.")
    return role


def _approver_event_dict() -> dict:
    return {
        "id": str(current_user.id),
        "username": current_user.username,
        "firstName": current_user.first_name,
        "lastName": current_user.last_name,
        "role": current_user.role,
    }


# ---------------------------------------------------------------------
# LIST USERS
# ---------------------------------------------------------------------

@users_bp.route("/")
@login_required
@manager_required
def list_users():
    """List users (excluding deleted) with optional role/status/search filters."""
    query = User.query.filter(User.status != USER_STATUS_DELETED)

    role = clean_str(request.args.get("role")).lower()
    if role:
        query = query.filter(User.role == role)

    status = clean_str(request.args.get("status")).lower()
    if status:
        query = query.filter(User.status == status)

    search = clean_str(request.args.get("search"))
    if search:
        like = f"%{search}%"
        query = query.filter(
            User.username.ilike(like)
            | User.email.ilike(like)
            | User.first_name.ilike(like)
            | User.last_name.ilike(like)
        )

    items, pagination = paginate(query.order_by(User.username.asc()))
    return api_response(items, pagination=pagination)


@users_bp.route("/pending")
@login_required
@manager_required
def pending_users():
    """Accounts waiting for approval (managers see cashiers only)."""
    query = User.query.filter(User.is_approved.is_(False), User.status != USER_STATUS_DELETED)
    if not current_user.is_superadmin:
        query = query.filter(User.role == ROLE_CASHIER)
    users = query.order_by(User.created_at.asc()).all()
    return api_response([u.to_dict() for u in users], count=len(users))


@users_bp.route("/<int:user_id>")
@login_required
@manager_required
def get_user(user_id: int):
    return api_response(_get_user(user_id).to_dict())


# ---------------------------------------------------------------------
# CREATE USER
# ---------------------------------------------------------------------

@users_bp.route("/", methods=["POST"])
@login_required
@manager_required
def create_user():
    """
    Create an approved, active account.

    Managers can only create cashiers.
    """
    data = json_body()
    fields = validate_account_fields(data)
    role = _validate_role(data.get("role") or ROLE_CASHIER)
    ensure_unique_account(fields["username"], fields["email"])

    user = User(
        username=fields["username"],
        email=fields["email"],
        role=role,
        first_name=fields["first_name"],
        last_name=fields["last_name"],
        status=USER_STATUS_ACTIVE,
        is_approved=True,
        approved_by_id=current_user.id,
        approved_at=utcnow(),
        created_by_id=current_user.id,
    )
    user.set_password(fields["password"])

    db.session.add(user)
    db.session.flush()
    log_action(user, "CREATE", after=serialize_model(user))
    db.session.commit()

    return api_response(user.to_dict(), "User created.", 201)


# ---------------------------------------------------------------------
# EDIT USER
# ---------------------------------------------------------------------

@users_bp.route("/<int:user_id>", methods=["PATCH", "PUT"])
@login_required
@manager_required
def update_user(user_id: int):
    """
    Update names, email, role, status or password.

    Only fields present in the body are changed.
    """
    user = _get_user(user_id)
    _ensure_can_manage(user)
    data = json_body()
    before = serialize_model(user)

    merged = {
        "username": data.get("username", user.username),
        "email": data.get("email", user.email),
        "password": data.get("password") or "",
        "first_name": data.get("first_name", user.first_name),
        "last_name": data.get("last_name", user.last_name),
    }
    fields = validate_account_fields(merged, require_password=bool(data.get("password")))
    ensure_unique_account(fields["username"], fields["email"], exclude_user_id=user.id)

    user.username = fields["username"]
    user.email = fields["email"]
    user.first_name = fields["first_name"]
    user.last_name = fields["last_name"]

    if "role" in data:
        role = _validate_role(data.get("role"))
        if user.id == current_user.id and role != user.role:
            raise ValidationError("You cannot change your own role.")
        user.role = role

    if "status" in data:
        status = clean_str(data.get("status")).lower()
        if status not in (USER_STATUS_ACTIVE, USER_STATUS_INACTIVE):
            raise ValidationError("Invalid status.", {"status": "Must be active or inactive."})
        if user.id == current_user.id and status != USER_STATUS_ACTIVE:
            raise ValidationError("You cannot deactivate your own account.")
        user.status = status
        if status == USER_STATUS_INACTIVE:
            user.session_token = None

    if fields["password"]:
        user.set_password(fields["password"])

    db.session.flush()
    log_action(user, "UPDATE", before=before, after=serialize_model(user))
    db.session.commit()

    return api_response(user.to_dict(), "User updated.")


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@login_required
@manager_required
def delete_user(user_id: int):
    """Soft delete: status=deleted, session revoked."""
    user = _get_user(user_id)
    _ensure_can_manage(user)
    if user.id == current_user.id:
        raise ValidationError("You cannot delete your own account.")

    before = serialize_model(user)
    user.status = USER_STATUS_DELETED
    user.session_token = None
    db.session.flush()
    log_action(user, "DELETE", before=before, after=serialize_model(user))
    db.session.commit()

    security.emit_session_termination(get_hub(), user.id, REASON_SECURITY_BREACH)
    return api_response(None, "User deleted.")


# ---------------------------------------------------------------------
# APPROVAL WORKFLOW
# ---------------------------------------------------------------------

def _set_approval(user_id: int, approved: bool):
    user = _get_user(user_id)
    _ensure_can_manage(user)
    data = json_body()
    reason = clean_str(data.get("reason")) or None

    before = serialize_model(user)
    user.is_approved = approved
    if approved:
        user.approved_by_id = current_user.id
        user.approved_at = utcnow()
        user.status = USER_STATUS_ACTIVE
    else:
        user.approved_by_id = None
        user.approved_at = None
        user.status = USER_STATUS_INACTIVE
        user.session_token = None

    db.session.flush()
    log_action(user, "APPROVE" if approved else "REJECT", before=before, after=serialize_model(user))
    db.session.commit()

    alerts.emit_user_approval(get_hub(), user.to_event_dict(), _approver_event_dict())
    broadcast_pending_approvals()

    action = "approved" if approved else "rejected"
    return api_response({"user": user.to_dict(), "reason": reason}, f"User {action} successfully.")


@users_bp.route("/<int:user_id>/approve", methods=["POST"])
@login_required
@manager_required
def approve_user(user_id: int):
    return _set_approval(user_id, True)


@users_bp.route("/<int:user_id>/reject", methods=["POST"])
@login_required
@manager_required
def reject_user(user_id: int):
    return _set_approval(user_id, False)


# ---------------------------------------------------------------------
# SESSION CONTROL
# ---------------------------------------------------------------------

@users_bp.route("/<int:user_id>/terminate-session", methods=["POST"])
@login_required
@manager_required
def terminate_session(user_id: int):
    """Revoke a user's session and tell their open clients to log out."""
    user = _get_user(user_id)
    _ensure_can_manage(user)
    if user.id == current_user.id:
        raise ValidationError("Use logout to end your own session.")

    user.session_token = None
    db.session.commit()

    notify = parse_bool(json_body().get("notify"), default=True)
    if notify:
        security.emit_session_termination(get_hub(), user.id, REASON_SECURITY_BREACH)
    return api_response(None, "Session terminated.")

