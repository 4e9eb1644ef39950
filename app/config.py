"""
Application configuration classes.

Each class represents a deployment environment. The factory function
``create_app`` in ``app/__init__.py`` selects the appropriate config
based on the FLASK_ENV environment variable.

Business limits (service quota, duration bounds, gallery size, the
per-owner business policy) live here as well so that a deployment can
tune them through the environment without touching service code.
"""

import logging
import os

# Module-level logger for startup warnings emitted by config classes.
_logger = logging.getLogger(__name__)

# =========================================================================
# Sentinel for detecting unset SECRET_KEY in production.
# =========================================================================
_DEFAULT_SECRET_KEY = "dev-secret-change-me"


def _env_int(name: str, default: int) -> int:
    """Read an integer setting from the environment."""
    return int(os.environ.get(name, str(default)))


class BaseConfig:
    """
    Shared configuration values inherited by all environments.

    Secrets and connection strings are loaded from environment variables
    so they never appear in source control.
    """

    # -- Flask core --------------------------------------------------------
    SECRET_KEY: str = os.environ.get("SECRET_KEY", _DEFAULT_SECRET_KEY)

    # -- Session cookie hardening ------------------------------------------
    SESSION_COOKIE_HTTPONLY: bool = True
    SESSION_COOKIE_SAMESITE: str = "Lax"

    # ProductionConfig overrides this to True (requires HTTPS).
    SESSION_COOKIE_SECURE: bool = False

    # Expire idle sessions after 1 hour instead of Flask's 31-day default.
    PERMANENT_SESSION_LIFETIME: int = _env_int("PERMANENT_SESSION_LIFETIME", 3600)

    # -- SQLAlchemy --------------------------------------------------------
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "DATABASE_URL", "sqlite:///booksite-dev.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    # Echo SQL statements to the log for debugging (override per env).
    SQLALCHEMY_ECHO: bool = False

    # -- Media storage -----------------------------------------------------
    # Root directory for the local-disk storage backend. Media assets keep
    # a storage key relative to this folder.
    UPLOAD_FOLDER: str = os.environ.get(
        "UPLOAD_FOLDER", os.path.join(os.getcwd(), "uploads")
    )

    # -- Business limits ---------------------------------------------------
    MAX_SERVICES_PER_BUSINESS: int = _env_int("MAX_SERVICES_PER_BUSINESS", 50)
    MIN_SERVICE_DURATION: int = _env_int("MIN_SERVICE_DURATION", 15)
    MAX_SERVICE_DURATION: int = _env_int("MAX_SERVICE_DURATION", 480)
    SERVICE_DURATION_STEP: int = 15
    MAX_GALLERY_IMAGES: int = _env_int("MAX_GALLERY_IMAGES", 15)

    # Number of businesses a single owner may hold. Zero means unlimited.
    MAX_BUSINESSES_PER_OWNER: int = _env_int("MAX_BUSINESSES_PER_OWNER", 1)

    # How many random suffixes to try before giving up on a slug.
    SLUG_MAX_ATTEMPTS: int = _env_int("SLUG_MAX_ATTEMPTS", 5)

    DEFAULT_CURRENCY: str = os.environ.get("DEFAULT_CURRENCY", "CRC")

    # -- Login lockout -----------------------------------------------------
    MAX_LOGIN_ATTEMPTS: int = _env_int("MAX_LOGIN_ATTEMPTS", 5)
    LOCKOUT_MINUTES: int = _env_int("LOCKOUT_MINUTES", 120)

    # -- Pagination --------------------------------------------------------
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # -- Dev login guard ---------------------------------------------------
    # Even when DEBUG is True, the dev-login route is disabled unless this
    # is explicitly set to "true" in the environment.
    DEV_LOGIN_ENABLED: bool = (
        os.environ.get("DEV_LOGIN_ENABLED", "false").lower() == "true"
    )

    # -- Logging -----------------------------------------------------------
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # =====================================================================
    # Production validation helpers
    # =====================================================================

    @classmethod
    def validate_production_secrets(cls, app_config: dict) -> None:
        """
        Verify that all required secrets are set for production.

        Called by ``create_app()`` when ``config_name == 'production'``.
        Raises ``RuntimeError`` for hard requirements and logs warnings
        for soft requirements.

        Raises:
            RuntimeError: If any critical setting is missing or still
                          set to its insecure default value.
        """
        errors: list[str] = []

        # -- SECRET_KEY (hard fail) ----------------------------------------
        if app_config.get("SECRET_KEY") == _DEFAULT_SECRET_KEY:
            errors.append(
                "SECRET_KEY is still the insecure default. "
                "Generate one with: python -c "
                '"import secrets; print(secrets.token_hex(32))"'
            )

        # -- Business limits must be positive (hard fail) ------------------
        for key in (
            "MAX_SERVICES_PER_BUSINESS",
            "MIN_SERVICE_DURATION",
            "MAX_SERVICE_DURATION",
            "SLUG_MAX_ATTEMPTS",
        ):
            if int(app_config.get(key, 0)) <= 0:
                errors.append(f"{key} must be a positive integer.")

        if errors:
            combined = "\n  - ".join(errors)
            raise RuntimeError(f"Production configuration errors:\n  - {combined}")

        # -- SQLite in production (soft warning) ---------------------------
        if app_config.get("SQLALCHEMY_DATABASE_URI", "").startswith("sqlite"):
            _logger.warning(
                "DATABASE_URL points at SQLite in production. Concurrent "
                "writers will serialize on the database file."
            )

        # -- LOG_LEVEL sanity check (soft warning) -------------------------
        if app_config.get("LOG_LEVEL", "").upper() == "DEBUG":
            _logger.warning(
                "LOG_LEVEL=DEBUG is not recommended in production. "
                "SQL statements and request data may appear in logs."
            )


class DevelopmentConfig(BaseConfig):
    """Development environment: verbose logging, SQL echo enabled."""

    DEBUG: bool = True
    SQLALCHEMY_ECHO: bool = True
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "DEBUG")

    DEV_LOGIN_ENABLED: bool = (
        os.environ.get("DEV_LOGIN_ENABLED", "true").lower() == "true"
    )


class TestingConfig(BaseConfig):
    """
    Testing environment: in-memory SQLite unless TEST_DATABASE_URL is set.

    WTF_CSRF_ENABLED is disabled so test requests don't need CSRF tokens.
    """

    TESTING: bool = True
    WTF_CSRF_ENABLED: bool = False

    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "TEST_DATABASE_URL", "sqlite:///:memory:"
    )
    LOG_LEVEL: str = "DEBUG"

    DEV_LOGIN_ENABLED: bool = True


class ProductionConfig(BaseConfig):
    """
    Production environment: strict settings, no debug output.

    The application factory calls ``validate_production_secrets()`` at
    startup and will refuse to launch if critical values are missing.
    """

    DEBUG: bool = False
    SQLALCHEMY_ECHO: bool = False
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "WARNING")

    SESSION_COOKIE_SECURE: bool = True

    DEV_LOGIN_ENABLED: bool = False


# Lookup dict used by the application factory.
config_by_name: dict[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}
