"""
Model package — imports all models so Alembic and SQLAlchemy can
discover them automatically when ``flask db`` commands are run.

  - user.py        -> accounts and lockout state
  - template.py    -> site templates
  - business.py    -> business sites and media assets
  - catalog.py     -> bookable services
  - reservation.py -> reservations and client variants
  - audit.py       -> audit trail
"""

from app.models.user import User  # noqa: F401
from app.models.template import Template  # noqa: F401
from app.models.business import Business, MediaAsset  # noqa: F401
from app.models.catalog import Service  # noqa: F401
from app.models.reservation import (  # noqa: F401
    GuestClient,
    RegisteredClient,
    Reservation,
)
from app.models.audit import AuditLog  # noqa: F401
