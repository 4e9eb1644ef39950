"""
User accounts and login lockout state.

Every account carries exactly one role (owner, client or admin). Role
names are referenced in code (e.g., ``role == 'admin'``). Passwords are
stored as Werkzeug hashes; users are deactivated, never deleted.
"""

from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from app.constants import ROLE_ADMIN, ROLE_CLIENT, ROLE_OWNER
from app.extensions import db


class User(UserMixin, db.Model):
    """
    Application user record.

    Inherits from ``UserMixin`` to satisfy Flask-Login requirements
    (``is_authenticated``, ``get_id``). ``is_active`` is a real column
    so that Flask-Login refuses to log in a deactivated account.

    ``business_id`` points at the owner's current business. It is
    cleared when that business is deleted.
    """

    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    role = db.Column(db.String(20), nullable=False, default=ROLE_CLIENT)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    business_id = db.Column(
        db.Integer,
        db.ForeignKey("business.id", use_alter=True, ondelete="SET NULL"),
        nullable=True,
    )

    # -- Lockout -----------------------------------------------------------
    failed_login_attempts = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime, nullable=True)

    last_login = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # -- Relationships -----------------------------------------------------
    business = db.relationship("Business", foreign_keys=[business_id], post_update=True)

    # ---- Passwords -------------------------------------------------------

    def set_password(self, password: str) -> None:
        """Hash and store a new password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Return True if ``password`` matches the stored hash."""
        return check_password_hash(self.password_hash, password)

    # ---- Convenience properties ------------------------------------------

    @property
    def full_name(self) -> str:
        """Return the user's full display name."""
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_owner(self) -> bool:
        return self.role == ROLE_OWNER

    @property
    def is_client(self) -> bool:
        return self.role == ROLE_CLIENT

    def has_role(self, *role_names: str) -> bool:
        """Check if the user has any of the given role names."""
        return self.role in role_names

    def is_locked(self, now: datetime) -> bool:
        """Return True while a lockout window is still open."""
        return self.locked_until is not None and self.locked_until > now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "role": self.role,
            "is_active": self.is_active,
            "business_id": self.business_id,
        }

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role}>"
