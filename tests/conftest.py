"""
Pytest fixtures for the POS test suite.

Provides:
- a fresh application per test (in-memory SQLite, CSRF off)
- user/product factories
- a recording Socket.IO server installed in the ConnectionHub, so that
  tests can assert on (event, room) pairs without a live transport
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from grocery_pos import create_app
from grocery_pos.extensions import db
from grocery_pos.models import Category, Product, User, USER_STATUS_ACTIVE
from grocery_pos.notifications import HUB_EXTENSION_KEY

PASSWORD = "secret123"


@pytest.fixture()
def app():
    app = create_app("config.TestingConfig")
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def hub(app):
    return app.extensions[HUB_EXTENSION_KEY]


class RecordingServer:
    """Stands in for the SocketIO server; remembers every emit."""

    def __init__(self):
        self.calls = []
        # no connected clients: analytics pushes are skipped
        self.server = MagicMock()
        self.server.manager.get_participants.return_value = []

    def emit(self, event, data, to=None, namespace=None):
        self.calls.append((event, to, data))

    def targets(self, event):
        return [room for name, room, _ in self.calls if name == event]

    def payloads(self, event):
        return [data for name, _, data in self.calls if name == event]


@pytest.fixture()
def emitted(hub):
    server = RecordingServer()
    hub.initialize(server)
    return server


@pytest.fixture()
def make_user(app):
    def _make_user(username, role="cashier", *, approved=True, status=USER_STATUS_ACTIVE, password=PASSWORD):
        with app.app_context():
            user = User(
                username=username,
                email=f"{username}@example.com",
                role=role,
                first_name=username.capitalize(),
                last_name="Test",
                status=status,
                is_approved=approved,
            )
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make_user


@pytest.fixture()
def make_product(app):
    def _make_product(name, price, stock=50, *, min_stock=5, discountable=False, vat_exemptable=False, sku=None):
        with app.app_context():
            category = Category.query.filter_by(name="Food").first()
            if category is None:
                category = Category(name="Food")
                db.session.add(category)
                db.session.flush()
            product = Product(
                name=name,
                sku=sku or name.upper().replace(" ", "-"),
                price=Decimal(str(price)),
                stock=stock,
                min_stock=min_stock,
                category_id=category.id,
                is_discountable=discountable,
                is_vat_exemptable=vat_exemptable,
            )
            db.session.add(product)
            db.session.commit()
            return product.id

    return _make_product


def login(client, username, password=PASSWORD):
    return client.post("/auth/login", json={"username": username, "password": password})


@pytest.fixture()
def login_as(app, make_user):
    """Create a user of the given role and return a logged-in test client."""

    def _login_as(username, role="cashier"):
        make_user(username, role)
        user_client = app.test_client()
        response = login(user_client, username)
        assert response.status_code == 200, response.get_json()
        return user_client

    return _login_as
