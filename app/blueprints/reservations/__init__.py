"""
Reservations blueprint — booking and reservation status.
"""

from flask import Blueprint

bp = Blueprint("reservations", __name__)

# Import routes after blueprint creation to avoid circular imports.
from app.blueprints.reservations import routes  # noqa: E402, F401
