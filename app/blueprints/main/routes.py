"""
Routes for the main blueprint — service index and health check.
"""

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.blueprints.main import bp
from app.extensions import db


@bp.route("/")
def index():
    """Name and version banner for API clients."""
    return {"success": True, "data": {"name": "BookSite API", "version": "0.1.0"}}


@bp.route("/health")
def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns 200 if the app is running and can reach the database.
    """
    try:
        db.session.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}, 200
    except SQLAlchemyError as exc:
        db.session.rollback()
        return {"status": "unhealthy", "database": str(exc)}, 503
