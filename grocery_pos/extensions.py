"""
Flask extension instances for the POS.

Created unbound here so that models, blueprints and the socket handlers can
import them without importing the app; create_app() binds them:
- db / migrate: SQLAlchemy models + Alembic migrations
- login_manager: cookie sessions (one live session per user, see models.User.get_id)
- csrf: X-CSRFToken header check on mutating JSON requests
- socketio: real-time transport behind notifications.hub.ConnectionHub
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()

login_manager = LoginManager()
# JSON API: no login page to redirect to
login_manager.login_view = None

csrf = CSRFProtect()

# async_mode / CORS origins come from config in create_app()
socketio = SocketIO()
