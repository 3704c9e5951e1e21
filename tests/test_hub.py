"""ConnectionHub addressing and failure behavior (no Flask app needed)."""

from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from grocery_pos.notifications import events
from grocery_pos.notifications.hub import ConnectionHub, to_wire


@pytest.fixture()
def server():
    server = MagicMock()
    server.server.manager.get_participants.return_value = []
    return server


@pytest.fixture()
def hub(server):
    hub = ConnectionHub()
    hub.initialize(server)
    return hub


def rooms(server):
    return [call.kwargs.get("to") for call in server.emit.call_args_list]


class TestUninitialized:
    def test_emits_do_not_raise(self, caplog):
        hub = ConnectionHub()
        assert hub.emit_to_role("manager", "notification", {"a": 1}) is False
        assert hub.emit_to_user("42", "notification", {}) is False
        assert hub.emit_to_all("system:maintenance", {}) is False
        hub.emit_to_roles(["manager", "superadmin"], "notification", {})
        assert "not initialized" in caplog.text

    def test_nothing_is_delivered_after_late_initialize(self, server):
        hub = ConnectionHub()
        hub.emit_to_role("manager", "notification", {})
        hub.initialize(server)
        server.emit.assert_not_called()

    def test_no_clients_when_uninitialized(self):
        hub = ConnectionHub()
        assert hub.connected_clients() == 0
        assert not hub.has_connected_clients()


class TestAddressing:
    def test_role_room_name_is_exact(self, hub, server):
        hub.emit_to_role("manager", "notification", {"x": 1})
        server.emit.assert_called_once_with("notification", {"x": 1}, to="role-manager", namespace="/")

    def test_user_room(self, hub, server):
        hub.emit_to_user("c1", "session_terminated", {})
        assert rooms(server) == ["user-c1"]

    def test_broadcast_has_no_room(self, hub, server):
        hub.emit_to_all("system:maintenance", {})
        server.emit.assert_called_once_with("system:maintenance", {}, namespace="/")

    def test_emit_to_roles_deduplicates(self, hub, server):
        hub.emit_to_roles(["manager", "superadmin", "manager"], "notification", {})
        assert rooms(server) == ["role-manager", "role-superadmin"]

    def test_room_helpers(self):
        assert events.role_room("cashier") == "role-cashier"
        assert events.user_room(7) == "user-7"


class TestTransportFailures:
    def test_transport_error_is_logged_not_raised(self, hub, server, caplog):
        server.emit.side_effect = RuntimeError("socket closed")
        assert hub.emit_to_role("manager", "notification", {}) is False
        assert "Failed to emit notification" in caplog.text

    def test_participant_count(self, hub, server):
        server.server.manager.get_participants.return_value = [("sid1", "e1"), ("sid2", "e2")]
        assert hub.connected_clients() == 2
        assert hub.room_size("role-manager") == 2
        server.server.manager.get_participants.assert_called_with("/", "role-manager")

    def test_unknown_namespace_counts_as_empty(self, hub, server):
        server.server.manager.get_participants.side_effect = KeyError("/")
        assert hub.connected_clients() == 0


def test_to_wire_converts_decimal_and_datetime():
    payload = {"total": Decimal("12.50"), "at": datetime(2024, 1, 2, 3, 4, 5), "items": [Decimal("1")]}
    assert to_wire(payload) == {"total": 12.5, "at": "2024-01-02T03:04:05", "items": [1.0]}


def test_iso_timestamp_format():
    assert events.iso_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05.000Z"
    assert events.iso_timestamp("2024-05-01T00:00:00Z") == "2024-05-01T00:00:00Z"
    assert events.iso_timestamp().endswith("Z")
