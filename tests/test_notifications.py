"""Audience and payload shape of every notification builder."""

from unittest.mock import MagicMock

import pytest

from grocery_pos.notifications import alerts, analytics, events, security, system
from grocery_pos.notifications.hub import ConnectionHub

TS = "2024-03-01T10:00:00.000Z"


@pytest.fixture()
def server():
    server = MagicMock()
    server.server.manager.get_participants.return_value = []
    return server


@pytest.fixture()
def hub(server):
    return ConnectionHub(server)


def sent(server):
    """[(event, room)] in emit order; room None means broadcast."""
    return [(call.args[0], call.kwargs.get("to")) for call in server.emit.call_args_list]


def payload(server, index=0):
    return server.emit.call_args_list[index].args[1]


class TestSecurity:
    def test_suspicious_login_alert(self, hub, server):
        result = security.emit_security_alert(
            hub,
            alert_type=events.ALERT_SUSPICIOUS_LOGIN,
            user_id=5,
            username="ana",
            ip_address="10.0.0.1",
            message="3 failed login attempts",
            timestamp=TS,
        )
        assert sent(server) == [
            ("security_alert", "role-manager"),
            ("security_alert", "role-superadmin"),
        ]
        assert result["severity"] == "high"
        assert result["userId"] == "5"
        assert result["timestamp"] == TS

    def test_session_terminated_alert_also_forces_logout(self, hub, server):
        result = security.emit_security_alert(
            hub, alert_type=events.ALERT_SESSION_TERMINATED, user_id="u1", username="ana"
        )
        assert sent(server) == [
            ("security_alert", "role-manager"),
            ("security_alert", "role-superadmin"),
            ("session_terminated", "user-u1"),
        ]
        assert result["severity"] == "medium"
        assert payload(server, 2)["type"] == "forced_logout"

    def test_session_termination(self, hub, server):
        result = security.emit_session_termination(hub, 9, events.REASON_SECURITY_BREACH)
        assert sent(server) == [("session_terminated", "user-9")]
        assert result["requiresReauth"] is True
        assert "security" in result["message"].lower()

    def test_unknown_reason_gets_default_message(self):
        assert security.session_termination_message("other") == security.DEFAULT_TERMINATION_MESSAGE

    def test_login_activity_goes_to_superadmins_only(self, hub, server):
        result = security.emit_login_activity(hub, user_id=3, username="bob", is_new_device=True)
        assert sent(server) == [("login_activity", "role-superadmin")]
        assert result["isNewDevice"] is True


class TestAlerts:
    def test_new_registration(self, hub, server):
        user = {"id": "4", "role": "cashier", "firstName": "Ana", "lastName": "Cruz"}
        result = alerts.emit_new_user_registration(hub, user)
        assert sent(server) == [("notification", "role-superadmin"), ("notification", "role-manager")]
        assert result["message"] == "New cashier registration: Ana Cruz"

    def test_user_approval(self, hub, server):
        user = {"id": "4", "firstName": "Ana", "lastName": "Cruz", "isApproved": False}
        result = alerts.emit_user_approval(hub, user, {"id": "1"})
        assert sent(server) == [("notification", "role-superadmin"), ("notification", "role-manager")]
        assert result["message"].endswith("has been rejected")

    def test_pending_approvals_update(self, hub, server):
        alerts.emit_pending_approvals_update(hub, "manager", 3)
        assert sent(server) == [("pending_approvals_update", "role-manager")]
        assert payload(server)["count"] == 3

    def test_refund_reaches_exactly_three_rooms(self, hub, server):
        alerts.emit_transaction_refund(hub, {"transactionNumber": "TXN1", "cashierId": "c1"}, "Mia Manager")
        rooms = [room for _, room in sent(server)]
        assert sorted(rooms) == ["role-manager", "role-superadmin", "user-c1"]
        assert len(rooms) == len(set(rooms))

    def test_refund_without_cashier(self, hub, server):
        alerts.emit_transaction_refund(hub, {"transactionNumber": "TXN1"}, "Mia Manager")
        assert [room for _, room in sent(server)] == ["role-manager", "role-superadmin"]

    def test_low_stock_alert_and_badge(self, hub, server):
        products = [{"id": "1", "name": "Milk", "stock": 0}, {"id": "2", "name": "Eggs", "stock": 2}]
        result = alerts.emit_low_stock_alert(hub, products, alert_type=events.ALERT_CRITICAL)
        assert sent(server) == [
            ("notification", "role-manager"),
            ("notification", "role-superadmin"),
            ("lowStockUpdate", "role-manager"),
            ("lowStockUpdate", "role-superadmin"),
        ]
        assert result["count"] == 2
        assert result["alertType"] == "critical"
        assert payload(server, 2) == {"count": 2}


class TestSystemAndAnalytics:
    def test_maintenance_is_broadcast(self, hub, server):
        system.emit_maintenance_mode_update(hub, maintenance_mode=True, maintenance_message="Back soon")
        assert sent(server) == [("system:maintenance", None)]
        data = payload(server)["data"]
        assert data["maintenanceMode"] is True
        assert data["maintenanceMessage"] == "Back soon"

    def test_analytics_update(self, hub, server):
        result = analytics.emit_analytics_update(hub, {"summary": {}}, timestamp=TS)
        assert sent(server) == [("analytics:update", "role-manager"), ("analytics:update", "role-superadmin")]
        assert result["timestamp"] == TS

    def test_cashier_analytics_update(self, hub, server):
        analytics.emit_cashier_analytics_update(hub, 7, {"summary": {}})
        assert sent(server) == [
            ("analytics:update", "user-7"),
            ("cashier:analytics:update", "role-manager"),
            ("cashier:analytics:update", "role-superadmin"),
        ]
        assert payload(server, 1)["cashierId"] == "7"
        assert "cashierId" not in payload(server, 0)

    def test_manager_analytics_update(self, hub, server):
        analytics.emit_manager_analytics_update(hub, {})
        assert sent(server) == [
            ("manager:analytics:update", "role-manager"),
            ("manager:analytics:update", "role-superadmin"),
        ]
