"""
Entry point for the POS server.

Usage (from project root):

    python run.py

The real-time channel needs the Socket.IO server, so prefer this script
over `flask run` (which serves HTTP only). CLI commands still work with:

    flask --app run.py seed-defaults

"""

from grocery_pos import create_app
from grocery_pos.extensions import socketio

# WSGI application object. `flask --app run.py ...` looks for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only).
    socketio.run(app, debug=True)
