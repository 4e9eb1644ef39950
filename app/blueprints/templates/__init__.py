"""
Templates blueprint — template catalog and resolution.
"""

from flask import Blueprint

bp = Blueprint("templates", __name__)

# Import routes after blueprint creation to avoid circular imports.
from app.blueprints.templates import routes  # noqa: E402, F401
