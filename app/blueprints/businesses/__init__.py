"""
Businesses blueprint — business site lifecycle and media.
"""

from flask import Blueprint

bp = Blueprint("businesses", __name__)

# Import routes after blueprint creation to avoid circular imports.
from app.blueprints.businesses import routes  # noqa: E402, F401
