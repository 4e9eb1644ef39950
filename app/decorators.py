"""
Route helpers for access control and request parsing.

``role_required`` is a coarse gate applied at the route level, used in
combination with Flask-Login's ``@login_required``::

    @bp.route('/admin/users')
    @login_required
    @role_required('admin')
    def list_users():
        ...

Fine-grained, per-resource checks happen inside the services through
``authorization_policy``; routes only hand over the current caller.
"""

import logging
from functools import wraps
from typing import Any

from flask import request
from flask_login import current_user

from app.errors import AuthenticationError, ValidationError
from app.services.authorization_policy import Caller

logger = logging.getLogger(__name__)


def role_required(*role_names: str):
    """
    Decorator that restricts access to users with one of the specified roles.

    Args:
        role_names: One or more role name strings (e.g., 'admin', 'owner').
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                raise AuthenticationError("Authentication required.")
            if current_user.role not in role_names:
                logger.warning(
                    "Access denied: user %d (%s) with role '%s' "
                    "attempted %s %s (requires one of: %s)",
                    current_user.id,
                    current_user.email,
                    current_user.role,
                    request.method,
                    request.path,
                    ", ".join(role_names),
                )
                raise AuthenticationError(
                    "You do not have permission to perform this action."
                )
            return func(*args, **kwargs)

        return wrapper

    return decorator


def current_caller() -> Caller | None:
    """The signed-in user as a ``Caller``, or None for anonymous guests."""
    return Caller.from_user(current_user)


def json_body() -> dict[str, Any]:
    """Return the request's JSON object, rejecting anything else."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def ok(data: Any = None, status: int = 200, **extra: Any):
    """Build the success envelope used by every JSON route."""
    body = {"success": True, "data": data}
    body.update(extra)
    return body, status
