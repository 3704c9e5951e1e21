"""
Store settings (single row).

- GET   /settings   any logged-in user (tax rate, currency, maintenance flag)
- PATCH /settings   superadmin only

Turning maintenance mode on or off is broadcast to every connected client
(system:maintenance). While it is on, the global guard in security.py
blocks mutations from everyone except superadmins.

AUDIT:
- UPDATE on SystemSettings is audited via audit.py.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import Blueprint
from flask_login import current_user, login_required

from ...audit import log_action, serialize_model
from ...errors import ValidationError
from ...extensions import db
from ...models import SystemSettings
from ...notifications import get_hub, system
from ...security import superadmin_required
from ...utils import api_response, clean_str, json_body, parse_bool, parse_decimal, parse_optional_int

logger = logging.getLogger(__name__)

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")

# field -> max length
_TEXT_FIELDS = {
    "maintenance_message": 255,
    "store_name": 120,
    "store_address": 255,
    "store_phone": 50,
    "store_email": 255,
    "currency": 8,
}


def _apply_changes(settings: SystemSettings, data: dict) -> None:
    errors = {}

    for field, max_len in _TEXT_FIELDS.items():
        if field not in data:
            continue
        value = clean_str(data.get(field)) or None
        if value and len(value) > max_len:
            errors[field] = f"Cannot exceed {max_len} characters."
        elif field in ("store_name", "currency") and not value:
            errors[field] = "Required."
        else:
            setattr(settings, field, value)

    if "tax_rate" in data:
        rate = parse_decimal(data.get("tax_rate"))
        if rate is None or not Decimal("0") <= rate <= Decimal("100"):
            errors["tax_rate"] = "Tax rate must be between 0 and 100."
        else:
            settings.tax_rate = rate

    if "session_timeout" in data:
        timeout = parse_optional_int(data.get("session_timeout"))
        if timeout is None or timeout < 1:
            errors["session_timeout"] = "Must be a positive number of minutes."
        else:
            settings.session_timeout = timeout

    for flag in ("maintenance_mode", "low_stock_alerts"):
        if flag in data:
            setattr(settings, flag, parse_bool(data.get(flag)))

    if errors:
        raise ValidationError(errors=errors)


@settings_bp.route("/")
@login_required
def get_settings():
    settings = SystemSettings.get()
    db.session.commit()
    return api_response(settings.to_dict())


@settings_bp.route("/", methods=["PATCH", "PUT"])
@login_required
@superadmin_required
def update_settings():
    settings = SystemSettings.get()
    db.session.flush()
    before = serialize_model(settings)
    was_maintenance = settings.maintenance_mode

    _apply_changes(settings, json_body())
    settings.updated_by_id = current_user.id

    db.session.flush()
    log_action(settings, "UPDATE", before=before, after=serialize_model(settings))
    db.session.commit()

    if settings.maintenance_mode != was_maintenance:
        logger.warning(
            "Maintenance mode %s by %s",
            "enabled" if settings.maintenance_mode else "disabled",
            current_user.username,
        )
        system.emit_maintenance_mode_update(
            get_hub(),
            maintenance_mode=settings.maintenance_mode,
            maintenance_message=settings.maintenance_message,
            updated_at=settings.updated_at,
        )

    return api_response(settings.to_dict(), "Settings updated.")
