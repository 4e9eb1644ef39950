"""
User service — registration, password login with lockout, and
admin-only account management.

Accounts are never deleted: deactivation clears ``is_active``, which
Flask-Login honours on every request. After ``MAX_LOGIN_ATTEMPTS``
consecutive failed logins an account is locked for ``LOCKOUT_MINUTES``.
"""

import logging
from datetime import timedelta
from typing import Any

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.constants import ROLE_ADMIN, ROLES, SELF_REGISTER_ROLES
from app.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.extensions import db
from app.models.user import User
from app.services import audit_service
from app.services.authorization_policy import Caller, require_role
from app.utils import is_valid_email, is_valid_phone, utcnow

logger = logging.getLogger(__name__)

_MIN_PASSWORD_LENGTH = 8


# -- User lookup -----------------------------------------------------------


def get_user_by_id(user_id: int) -> User | None:
    """Return a user by primary key, or None if not found."""
    return db.session.get(User, user_id)


def get_user_by_email(email: str) -> User | None:
    """Return a user by email address (case-insensitive)."""
    return User.query.filter(
        db.func.lower(User.email) == (email or "").strip().lower()
    ).first()


def _get_or_404(user_id: int) -> User:
    user = get_user_by_id(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")
    return user


def get_all_users(
    caller: Caller,
    include_inactive: bool = False,
    role: str | None = None,
    page: int = 1,
    per_page: int = 50,
):
    """Admin-only: paginated users ordered by last name."""
    require_role(caller, ROLE_ADMIN)
    query = User.query.order_by(User.last_name, User.first_name, User.id)
    if not include_inactive:
        query = query.filter(User.is_active == True)  # noqa: E712  pylint: disable=singleton-comparison
    if role:
        query = query.filter(User.role == role)
    return query.paginate(page=page, per_page=per_page, error_out=False)


# -- Registration ----------------------------------------------------------


def register_user(data: dict[str, Any], created_by: int | None = None) -> User:
    """
    Create an account.

    Self-registration may only pick the ``owner`` or ``client`` role;
    admins are created through the CLI.

    Raises:
        ValidationError: Missing or malformed fields, or a disallowed role.
        ConflictError:   The email is already registered.
    """
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")
    first_name = str(data.get("first_name") or "").strip()
    last_name = str(data.get("last_name") or "").strip()
    phone = str(data.get("phone") or "").strip() or None
    role = data.get("role") or "client"

    if not is_valid_email(email):
        raise ValidationError.for_field("email", "Invalid email format.")
    if len(password) < _MIN_PASSWORD_LENGTH:
        raise ValidationError.for_field(
            "password",
            f"Password must be at least {_MIN_PASSWORD_LENGTH} characters.",
        )
    if not first_name or not last_name:
        raise ValidationError("First and last name are required.")
    if phone is not None and not is_valid_phone(phone):
        raise ValidationError.for_field("phone", "Invalid phone format.")
    if role not in SELF_REGISTER_ROLES:
        raise ValidationError.for_field(
            "role", f"Role must be one of: {', '.join(SELF_REGISTER_ROLES)}."
        )
    if get_user_by_email(email) is not None:
        raise ConflictError("An account with this email already exists.")

    return _create_user(email, password, first_name, last_name, phone, role, created_by)


def _create_user(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    phone: str | None,
    role: str,
    created_by: int | None,
) -> User:
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=role,
    )
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("An account with this email already exists.") from exc

    audit_service.log_change(
        user_id=created_by,
        action_type="CREATE",
        entity_type="auth.user",
        entity_id=user.id,
        new_value={"email": email, "role": role},
    )
    db.session.commit()

    logger.info("Registered user %s with role %s", email, role)
    return user


def provision_admin(
    email: str, password: str, first_name: str, last_name: str
) -> User:
    """Create an admin account. Only reachable from the CLI."""
    if get_user_by_email(email) is not None:
        raise ConflictError("An account with this email already exists.")
    return _create_user(
        email.strip().lower(), password, first_name, last_name, None, ROLE_ADMIN, None
    )


# -- Authentication --------------------------------------------------------


def authenticate(email: str, password: str) -> User:
    """
    Verify credentials and record the login.

    Failed attempts are counted; reaching ``MAX_LOGIN_ATTEMPTS`` locks
    the account for ``LOCKOUT_MINUTES``. A successful login resets the
    counter.

    Raises:
        AuthenticationError: Bad credentials, locked or inactive account.
    """
    user = get_user_by_email(email)
    now = utcnow()
    if user is None:
        logger.info("Login failed: unknown email %s", email)
        raise AuthenticationError("Invalid email or password.")

    if user.is_locked(now):
        logger.warning("Login refused: account %s locked until %s", user.email, user.locked_until)
        raise AuthenticationError(
            "Account temporarily locked after too many failed attempts."
        )
    if not user.is_active:
        logger.warning("Login refused: account %s is deactivated", user.email)
        raise AuthenticationError("Account is deactivated.")

    if not user.check_password(password or ""):
        record_failed_login(user)
        raise AuthenticationError("Invalid email or password.")

    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login = now
    audit_service.log_login(user.id)
    db.session.commit()
    return user


def record_failed_login(user: User) -> None:
    """Count a failed login and lock the account once the limit is hit."""
    config = current_app.config
    now = utcnow()
    # An expired lock starts a fresh window.
    if user.locked_until is not None and user.locked_until <= now:
        user.failed_login_attempts = 0
        user.locked_until = None

    user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
    if user.failed_login_attempts >= config["MAX_LOGIN_ATTEMPTS"]:
        user.locked_until = now + timedelta(minutes=config["LOCKOUT_MINUTES"])
        logger.warning(
            "Account %s locked after %d failed logins",
            user.email,
            user.failed_login_attempts,
        )
    db.session.commit()


# -- Admin actions ---------------------------------------------------------


def change_role(caller: Caller, user_id: int, new_role: str) -> User:
    """Admin-only: change a user's role."""
    require_role(caller, ROLE_ADMIN)
    if new_role not in ROLES:
        raise ValidationError.for_field("role", f"Role must be one of: {', '.join(ROLES)}.")
    user = _get_or_404(user_id)
    if user.id == caller.id and new_role != ROLE_ADMIN:
        raise ConflictError("Administrators cannot demote themselves.")
    if user.role == new_role:
        return user

    old_role = user.role
    user.role = new_role
    audit_service.log_change(
        user_id=caller.id,
        action_type="UPDATE",
        entity_type="auth.user",
        entity_id=user.id,
        previous_value={"role": old_role},
        new_value={"role": new_role},
    )
    db.session.commit()

    logger.info("Changed role for user %s: %s -> %s", user.email, old_role, new_role)
    return user


def _set_active(caller: Caller, user_id: int, is_active: bool) -> User:
    require_role(caller, ROLE_ADMIN)
    user = _get_or_404(user_id)
    if user.id == caller.id and not is_active:
        raise ConflictError("Administrators cannot deactivate themselves.")
    if user.is_active == is_active:
        return user

    user.is_active = is_active
    audit_service.log_change(
        user_id=caller.id,
        action_type="UPDATE",
        entity_type="auth.user",
        entity_id=user.id,
        previous_value={"is_active": not is_active},
        new_value={"is_active": is_active},
    )
    db.session.commit()

    logger.info("%s user %s", "Reactivated" if is_active else "Deactivated", user.email)
    return user


def deactivate_user(caller: Caller, user_id: int) -> User:
    """Soft-delete a user by setting is_active to False."""
    return _set_active(caller, user_id, False)


def reactivate_user(caller: Caller, user_id: int) -> User:
    """Re-enable a previously deactivated user."""
    return _set_active(caller, user_id, True)


def unlock_user(caller: Caller, user_id: int) -> User:
    """Admin-only: clear a login lockout."""
    require_role(caller, ROLE_ADMIN)
    user = _get_or_404(user_id)
    user.failed_login_attempts = 0
    user.locked_until = None
    audit_service.log_change(
        user_id=caller.id,
        action_type="UPDATE",
        entity_type="auth.user",
        entity_id=user.id,
        new_value={"unlocked": True},
    )
    db.session.commit()
    return user
