"""
grocery_pos/__init__.py

Flask application factory for the Grocery Store POS.

Requirements:
- REST API (JSON) for checkout, inventory, users, settings, analytics.
- Real-time notifications over Socket.IO, addressed to role/user rooms.
- UI is never trusted; server-side access control is enforced.

Wiring order:
1) extensions (db, migrate, csrf, login, socketio)
2) ConnectionHub initialized with the SocketIO server and stored in
   app.extensions["connection_hub"] (builders receive it explicitly)
3) global guards, blueprints, error handlers, CLI
"""

from __future__ import annotations

import logging

import click
from flask import Flask, current_app

from .errors import AuthenticationError, register_error_handlers
from .extensions import csrf, db, login_manager, migrate, socketio
from .models import User
from .notifications import HUB_EXTENSION_KEY
from .notifications.hub import ConnectionHub
from .security import maintenance_guard
from .sockets import register_socket_handlers

# Blueprint imports kept inside create_app() where possible to reduce import side effects.


def _configure_logging(app: Flask) -> None:
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("grocery_pos").setLevel(level)


def create_app(config_object: str = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)
    login_manager.session_protection = "basic"

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """
        Load user for Flask-Login.

        Session ids are "<id>:<session_token>"; a token that no longer
        matches the user row means a newer login replaced this session.
        """
        raw_id, _, token = (user_id or "").partition(":")
        if not raw_id.isdigit():
            return None
        user = db.session.get(User, int(raw_id))
        if user is None or not user.session_token or user.session_token != token:
            return None
        return user

    @login_manager.unauthorized_handler
    def _unauthorized():
        raise AuthenticationError()

    socketio.init_app(
        app,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE"),
        cors_allowed_origins=app.config.get("SOCKETIO_CORS_ORIGINS"),
    )
    register_socket_handlers(socketio)

    hub = ConnectionHub()
    hub.initialize(socketio)
    app.extensions[HUB_EXTENSION_KEY] = hub

    # ----------------------------------------------------------------------
    # GLOBAL SECURITY NET: maintenance mode (server-side).
    # ----------------------------------------------------------------------
    @app.before_request
    def _maintenance_guard_hook():
        """Block mutations from non-superadmins while maintenance mode is on."""
        maintenance_guard()

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.users import users_bp
    from .blueprints.categories import categories_bp
    from .blueprints.products import products_bp
    from .blueprints.transactions import transactions_bp
    from .blueprints.settings import settings_bp
    from .blueprints.analytics import analytics_bp
    from .blueprints.notifications import notifications_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(notifications_bp)

    register_error_handlers(app)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-defaults")
    def seed_defaults_command():
        """Seed default store settings and categories."""
        from .seed import seed_defaults

        seed_defaults()
        click.echo("Default settings and categories seeded.")

    @app.cli.command("create-superadmin")
    @click.option("--username", prompt=True)
    @click.option("--email", prompt=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def create_superadmin_command(username: str, email: str, password: str):
        """Create an approved, active superadmin account."""
        from .seed import create_superadmin

        try:
            user = create_superadmin(username=username, email=email, password=password)
        except ValueError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"Superadmin {user.username} created.")

    @app.route("/health")
    def health():
        """Liveness probe."""
        return {"status": "ok", "app": current_app.config["APP_NAME"], "socket_clients": hub.connected_clients()}

    return app
