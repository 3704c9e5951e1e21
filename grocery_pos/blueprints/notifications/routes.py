"""
Pull-based notification summary.

Clients that were offline (or lost their socket) call GET /notifications
to catch up on the counters normally pushed in real time:
- pending approvals (manager+; managers only count cashiers)
- low-stock products (manager+)
- maintenance flag (everyone)
"""

from __future__ import annotations

from flask import Blueprint
from flask_login import current_user, login_required

from ... import sales
from ...models import User, USER_STATUS_DELETED, SystemSettings
from ...notifications.events import ROLE_CASHIER
from ...security import is_manager_or_above
from ...utils import api_response

notifications_bp = Blueprint("notifications", __name__, url_prefix="/notifications")


def _pending_approvals() -> int:
    query = User.query.filter(User.is_approved.is_(False), User.status != USER_STATUS_DELETED)
    if not current_user.is_superadmin:
        query = query.filter(User.role == ROLE_CASHIER)
    return query.count()


@notifications_bp.route("/")
@login_required
def summary():
    settings = SystemSettings.get()
    data = {
        "maintenance_mode": settings.maintenance_mode,
        "maintenance_message": settings.maintenance_message if settings.maintenance_mode else None,
    }

    if is_manager_or_above():
        low_stock = sales.low_stock_products()
        data["pending_approvals"] = _pending_approvals()
        data["low_stock_count"] = len(low_stock)
        data["low_stock"] = [p.to_event_dict() for p in low_stock]

    return api_response(data)
