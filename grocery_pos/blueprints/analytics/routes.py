"""
Sales analytics.

- GET  /analytics/dashboard   manager+ (store-wide)
- GET  /analytics/cashier     the caller's own figures (any role)
- POST /analytics/refresh     manager+; recompute and push analytics:update

?days= selects the window (1..365, default 30).
"""

from __future__ import annotations

from flask import Blueprint, request
from flask_login import current_user, login_required

from ... import analytics
from ...errors import ValidationError
from ...notifications import analytics as analytics_events
from ...notifications import get_hub
from ...security import manager_required
from ...utils import api_response, parse_optional_int

analytics_bp = Blueprint("analytics", __name__, url_prefix="/analytics")

MAX_DAYS = 365


def _days() -> int:
    raw = request.args.get("days")
    if raw in (None, ""):
        return 30
    days = parse_optional_int(raw)
    if days is None or not 1 <= days <= MAX_DAYS:
        raise ValidationError("Invalid period.", {"days": f"Must be between 1 and {MAX_DAYS}."})
    return days


@analytics_bp.route("/dashboard")
@login_required
@manager_required
def dashboard():
    return api_response(analytics.dashboard_analytics(_days()))


@analytics_bp.route("/cashier")
@login_required
def cashier():
    return api_response(analytics.cashier_analytics(current_user.id, _days()))


@analytics_bp.route("/refresh", methods=["POST"])
@login_required
@manager_required
def refresh():
    """Push fresh dashboard figures to every manager/superadmin client."""
    data = analytics.dashboard_analytics(_days())
    payload = analytics_events.emit_analytics_update(get_hub(), data)
    return api_response({"timestamp": payload["timestamp"]}, "Analytics update sent.")
