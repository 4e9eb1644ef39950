"""
Application factory for the BookSite business-site and booking API.

Usage::

    from app import create_app
    app = create_app()           # Uses FLASK_ENV to pick config.
    app = create_app("testing")  # Explicit config for tests.
"""

import logging
import os

from flask import Flask
from sqlalchemy import event
from werkzeug.exceptions import HTTPException

from .config import config_by_name
from .errors import ServiceError
from .extensions import csrf, db, login_manager, migrate

logger = logging.getLogger(__name__)


def create_app(config_name: str | None = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_name: One of 'development', 'testing', or 'production'.
                     Defaults to the FLASK_ENV environment variable,
                     falling back to 'development'.

    Returns:
        A fully configured Flask application instance.
    """
    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")
    config_class = config_by_name.get(config_name)
    if config_class is None:
        raise ValueError(
            f"Unknown config '{config_name}'. "
            f"Valid options: {list(config_by_name.keys())}"
        )

    app = Flask(__name__)
    app.config.from_object(config_class)

    if config_name == "production":
        config_class.validate_production_secrets(app.config)

    # -- Configure logging -------------------------------------------------
    _configure_logging(app)

    # -- Initialize extensions ---------------------------------------------
    _register_extensions(app)

    # -- Register blueprints -----------------------------------------------
    _register_blueprints(app)

    # -- Register error handlers -------------------------------------------
    _register_error_handlers(app)

    # -- Register custom CLI commands --------------------------------------
    _register_cli_commands(app)

    return app


def _register_extensions(app: Flask) -> None:
    """Bind all Flask extensions to the application instance."""
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)

    # Imported here to avoid circular imports with models.
    from .models.user import User  # pylint: disable=import-outside-toplevel

    from .utils import utcnow  # pylint: disable=import-outside-toplevel

    @login_manager.user_loader
    def load_user(user_id: str):
        """
        Load a user by primary key for Flask-Login session management.

        Deactivated or locked accounts drop back to anonymous, so a
        session cookie issued earlier stops working immediately.
        """
        user = db.session.get(User, int(user_id))
        if user is None or not user.is_active or user.is_locked(utcnow()):
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        """Answer unauthenticated API calls with a JSON 401."""
        return {
            "success": False,
            "error": {
                "code": "AUTHENTICATION_ERROR",
                "message": "Authentication required.",
                "details": [],
            },
        }, 401

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        with app.app_context():
            _enable_sqlite_savepoints(db.engine)


def _enable_sqlite_savepoints(engine) -> None:
    """
    Let SQLAlchemy, not pysqlite, emit BEGIN so that SAVEPOINT (used by
    the slug retry and template usage counter) nests correctly.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):  # pylint: disable=unused-argument
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _register_blueprints(app: Flask) -> None:
    """
    Import and register each blueprint with its URL prefix.

    Blueprints are imported inside this function to avoid circular
    imports — models and services can safely import ``db`` from
    extensions at module level.
    """
    # pylint: disable=import-outside-toplevel

    # Main blueprint: health check.
    from .blueprints.main import bp as main_bp

    app.register_blueprint(main_bp)

    # Authentication: register, login, logout.
    from .blueprints.auth import bp as auth_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")

    # Businesses: lifecycle and media.
    from .blueprints.businesses import bp as businesses_bp

    app.register_blueprint(businesses_bp, url_prefix="/businesses")

    # Catalog: services, nested under businesses and standalone.
    from .blueprints.catalog import bp as catalog_bp

    app.register_blueprint(catalog_bp)

    # Reservations: booking and state machine.
    from .blueprints.reservations import bp as reservations_bp

    app.register_blueprint(reservations_bp, url_prefix="/reservations")

    # Templates: catalog and resolution.
    from .blueprints.templates import bp as templates_bp

    app.register_blueprint(templates_bp, url_prefix="/templates")

    # Admin: user management and audit logs.
    from .blueprints.admin import bp as admin_bp

    app.register_blueprint(admin_bp, url_prefix="/admin")

    # The API is JSON over a session cookie with SameSite=Lax; form
    # CSRF tokens do not apply to it.
    for blueprint in (
        auth_bp,
        businesses_bp,
        catalog_bp,
        reservations_bp,
        templates_bp,
        admin_bp,
    ):
        csrf.exempt(blueprint)


def _error_body(code: str, message: str, details=None) -> dict:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or []},
    }


def _register_error_handlers(app: Flask) -> None:
    """Render service errors and HTTP errors as JSON envelopes."""

    @app.errorhandler(ServiceError)
    def service_error(error: ServiceError):
        """Map the service error taxonomy onto HTTP statuses."""
        return error.to_dict(), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        """Handle 401/403/404/405 and other werkzeug HTTP errors."""
        code = {
            401: "AUTHENTICATION_ERROR",
            403: "AUTHENTICATION_ERROR",
            404: "NOT_FOUND_ERROR",
        }.get(error.code, "HTTP_ERROR")
        return _error_body(code, error.description or error.name), error.code

    @app.errorhandler(500)
    def internal_error(error):  # pylint: disable=unused-argument
        """Handle 500 Internal Server Error."""
        db.session.rollback()
        logger.error("Unhandled error: %s", error, exc_info=True)
        return _error_body("INTERNAL_ERROR", "An unexpected error occurred."), 500


def _register_cli_commands(app: Flask) -> None:
    """Register custom Flask CLI commands (e.g., flask seed-templates)."""
    from .cli import register_commands  # pylint: disable=import-outside-toplevel

    register_commands(app)


def _configure_logging(app: Flask) -> None:
    """Set the root log level from LOG_LEVEL and quiet noisy libraries."""
    log_level = app.config.get("LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if app.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
