"""
Catalog blueprint — services offered by a business.
"""

from flask import Blueprint

bp = Blueprint("catalog", __name__)

# Import routes after blueprint creation to avoid circular imports.
from app.blueprints.catalog import routes  # noqa: E402, F401
