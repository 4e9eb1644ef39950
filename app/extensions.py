"""
Flask extension instances.

Extensions are created here without binding to an application so that
the application factory can call ``init_app()`` on each one during
``create_app()``.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

# -- Database ORM ----------------------------------------------------------
# The ``db`` instance is imported by models and services throughout the app.
db = SQLAlchemy()

# -- Schema migrations (Alembic via Flask-Migrate) -------------------------
migrate = Migrate()

# -- Session-based authentication ------------------------------------------
# The API answers JSON, so there is no login_view to redirect to; the
# unauthorized handler in create_app() renders a 401 body instead.
login_manager = LoginManager()
login_manager.session_protection = "basic"

# -- CSRF protection -------------------------------------------------------
# JSON blueprints are exempted in create_app(); CSRFProtect still guards
# any form-posting views added later.
csrf = CSRFProtect()
