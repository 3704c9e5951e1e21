"""Registration, login, single-session enforcement, self-service account edits and bootstrap."""

import pytest

from conftest import PASSWORD, login

from grocery_pos.extensions import db
from grocery_pos.models import AuditLog, User

REGISTRATION = {
    "username": "newcashier",
    "email": "New@Example.com",
    "password": "pass1234",
    "first_name": "Nina",
    "last_name": "Reyes",
}


class TestRegister:
    def test_creates_pending_cashier_and_notifies_approvers(self, app, client, emitted):
        response = client.post("/auth/register", json=REGISTRATION)

        assert response.status_code == 201
        user = response.get_json()["data"]["user"]
        assert user["role"] == "cashier"
        assert user["status"] == "inactive"
        assert user["is_approved"] is False
        assert user["email"] == "new@example.com"

        assert emitted.targets("notification") == ["role-superadmin", "role-manager"]
        assert emitted.targets("pending_approvals_update") == ["role-superadmin", "role-manager"]
        assert emitted.payloads("pending_approvals_update")[0]["count"] == 1

        with app.app_context():
            assert AuditLog.query.filter_by(entity_type="User", action="CREATE").count() == 1

    def test_validation_errors(self, client):
        response = client.post("/auth/register", json={"username": "ab", "email": "nope"})
        body = response.get_json()
        assert response.status_code == 400
        assert body["success"] is False
        assert set(body["errors"]) >= {"username", "email", "password", "first_name", "last_name"}

    def test_duplicate_is_conflict(self, client, make_user):
        make_user("newcashier")
        response = client.post("/auth/register", json=REGISTRATION)
        assert response.status_code == 409

    def test_pending_user_cannot_log_in(self, client):
        client.post("/auth/register", json=REGISTRATION)
        response = login(client, "newcashier", "pass1234")
        assert response.status_code == 403


class TestLogin:
    def test_success_reports_login_activity(self, client, make_user, emitted):
        make_user("cathy")
        response = login(client, "cathy")

        assert response.status_code == 200
        assert response.get_json()["data"]["user"]["username"] == "cathy"
        assert emitted.targets("login_activity") == ["role-superadmin"]
        assert emitted.targets("security_alert") == []

        me = client.get("/auth/me")
        assert me.status_code == 200
        assert me.get_json()["data"]["user"]["username"] == "cathy"

    def test_login_by_email(self, client, make_user):
        make_user("cathy")
        response = client.post("/auth/login", json={"email": "cathy@example.com", "password": PASSWORD})
        assert response.status_code == 200

    def test_wrong_password(self, client, make_user):
        make_user("cathy")
        response = login(client, "cathy", "wrong-password")
        assert response.status_code == 401
        assert response.get_json() == {"success": False, "message": "Invalid credentials."}

    def test_repeated_failures_raise_suspicious_login_alert(self, app, client, make_user, emitted):
        make_user("cathy")
        for _ in range(app.config["MAX_LOGIN_ATTEMPTS"] - 1):
            login(client, "cathy", "wrong-password")
        assert emitted.targets("security_alert") == []

        login(client, "cathy", "wrong-password")
        alert = emitted.payloads("security_alert")[0]
        assert alert["alertType"] == "suspicious_login"
        assert alert["severity"] == "high"
        assert emitted.targets("security_alert") == ["role-manager", "role-superadmin"]

    def test_success_resets_failed_attempts(self, app, client, make_user):
        user_id = make_user("cathy")
        login(client, "cathy", "wrong-password")
        login(client, "cathy")
        with app.app_context():
            assert db.session.get(User, user_id).failed_login_attempts == 0

    def test_second_login_terminates_first_session(self, app, make_user, emitted):
        user_id = make_user("cathy")
        first, second = app.test_client(), app.test_client()

        assert login(first, "cathy").status_code == 200
        assert first.get("/auth/me").status_code == 200

        assert login(second, "cathy").status_code == 200
        assert first.get("/auth/me").status_code == 401
        assert second.get("/auth/me").status_code == 200

        alert = emitted.payloads("security_alert")[0]
        assert alert["alertType"] == "session_terminated"
        assert emitted.targets("session_terminated") == [f"user-{user_id}"]
        assert emitted.payloads("session_terminated")[0]["type"] == "forced_logout"

    def test_inactive_user_rejected(self, client, make_user):
        make_user("gone", status="inactive")
        assert login(client, "gone").status_code == 403

    def test_logout_clears_session(self, client, make_user):
        make_user("cathy")
        login(client, "cathy")
        assert client.post("/auth/logout").status_code == 200
        assert client.get("/auth/me").status_code == 401


class TestAccountSelfService:
    def test_profile_update_is_audited(self, app, make_user):
        user_id = make_user("cathy")
        cathy = app.test_client()
        login(cathy, "cathy")

        response = cathy.put("/auth/profile", json={"first_name": "Catherine", "email": "Cat@Example.com"})
        assert response.status_code == 200
        user = response.get_json()["data"]["user"]
        assert user["first_name"] == "Catherine"
        assert user["email"] == "cat@example.com"
        assert user["role"] == "cashier"

        with app.app_context():
            entry = AuditLog.query.filter_by(entity_type="User", entity_id=user_id, action="UPDATE").one()
            assert "Catherine" in entry.after_data

    def test_profile_rejects_taken_email_and_blank_names(self, app, make_user):
        make_user("cathy")
        make_user("mia")
        cathy = app.test_client()
        login(cathy, "cathy")

        assert cathy.put("/auth/profile", json={"email": "mia@example.com"}).status_code == 409
        response = cathy.put("/auth/profile", json={"last_name": "  ", "email": "nope"})
        assert response.status_code == 400
        assert set(response.get_json()["errors"]) == {"last_name", "email"}

    def test_profile_requires_login(self, client):
        assert client.put("/auth/profile", json={"first_name": "X"}).status_code == 401

    def test_change_password(self, app, make_user):
        user_id = make_user("cathy")
        cathy = app.test_client()
        login(cathy, "cathy")

        # a second holder of the same session cookie
        stale = app.test_client()
        stale.set_cookie("session", cathy.get_cookie("session").value)
        assert stale.get("/auth/me").status_code == 200

        response = cathy.put("/auth/change-password", json={"current_password": PASSWORD, "new_password": "newpass1"})
        assert response.status_code == 200

        assert cathy.get("/auth/me").status_code == 200
        assert stale.get("/auth/me").status_code == 401
        assert login(app.test_client(), "cathy").status_code == 401
        assert login(app.test_client(), "cathy", "newpass1").status_code == 200

        with app.app_context():
            assert AuditLog.query.filter_by(entity_id=user_id, action="PASSWORD_CHANGE").count() == 1

    @pytest.mark.parametrize(
        "payload, field",
        [
            ({"current_password": "wrong-one", "new_password": "newpass1"}, "current_password"),
            ({"current_password": PASSWORD, "new_password": "123"}, "new_password"),
        ],
    )
    def test_change_password_rejections(self, app, make_user, payload, field):
        make_user("cathy")
        cathy = app.test_client()
        login(cathy, "cathy")

        response = cathy.put("/auth/change-password", json=payload)
        assert response.status_code == 400
        assert field in response.get_json()["errors"]
        assert cathy.put("/auth/change-password", json={}).status_code == 400
        assert login(app.test_client(), "cathy").status_code == 200


class TestSeedSuperadmin:
    PAYLOAD = {
        "username": "root",
        "email": "root@example.com",
        "password": "rootpass",
        "first_name": "Root",
        "last_name": "Admin",
    }

    def test_first_user_becomes_superadmin(self, client):
        response = client.post("/auth/seed-superadmin", json=self.PAYLOAD)
        assert response.status_code == 201
        assert response.get_json()["data"]["user"]["role"] == "superadmin"
        assert login(client, "root", "rootpass").status_code == 200

    def test_blocked_once_users_exist(self, client, make_user):
        make_user("someone")
        response = client.post("/auth/seed-superadmin", json=self.PAYLOAD)
        assert response.status_code == 403


def test_csrf_token_endpoint(client):
    response = client.get("/auth/csrf-token")
    assert response.status_code == 200
    assert response.get_json()["data"]["csrf_token"]


def test_health_is_public(client):
    data = client.get("/health").get_json()
    assert data == {"status": "ok", "app": "Grocery Store POS", "socket_clients": 0}
