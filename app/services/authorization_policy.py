"""
Authorization policy — the single place that decides who may see or
change which resource.

The predicates are pure: they read the resource's ownership chain and
the caller's role and never touch the session or raise. Services call
the ``require_*`` helpers, which turn a refusal into an
``AuthenticationError`` and log it the way the route decorators do.

Rules:
  - An admin may view and manage everything.
  - An owner may view and manage resources of businesses they own.
  - A client may view their own reservations (and cancel them).
  - Active businesses, their active services, and public templates are
    visible to everyone, including anonymous guests.
  - An inactive caller is treated as anonymous.
"""

import logging
from dataclasses import dataclass

from app.constants import BUSINESS_ACTIVE, ROLE_ADMIN, ROLE_CLIENT, ROLE_OWNER
from app.errors import AuthenticationError
from app.models.business import Business, MediaAsset
from app.models.catalog import Service
from app.models.reservation import Reservation
from app.models.template import Template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """The authenticated identity an operation runs on behalf of."""

    id: int
    role: str
    is_active: bool = True

    @classmethod
    def from_user(cls, user) -> "Caller | None":
        """Build a caller from a User row (or Flask-Login's anonymous user)."""
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        return cls(id=user.id, role=user.role, is_active=bool(user.is_active))

    @property
    def is_admin(self) -> bool:
        return self.is_active and self.role == ROLE_ADMIN

    @property
    def is_owner(self) -> bool:
        return self.is_active and self.role == ROLE_OWNER

    @property
    def is_client(self) -> bool:
        return self.is_active and self.role == ROLE_CLIENT


def _effective(caller: Caller | None) -> Caller | None:
    if caller is None or not caller.is_active:
        return None
    return caller


def _owning_business(resource) -> Business | None:
    """Walk the ownership chain up to the business a resource belongs to."""
    if isinstance(resource, Business):
        return resource
    if isinstance(resource, (Service, Reservation, MediaAsset)):
        return resource.business
    return None


# -- Predicates ------------------------------------------------------------


def owns_business(caller: Caller | None, business: Business | None) -> bool:
    """True if the caller is the owner-role user that owns ``business``."""
    caller = _effective(caller)
    return (
        caller is not None
        and business is not None
        and caller.role == ROLE_OWNER
        and business.owner_id == caller.id
    )


def owns_template(caller: Caller | None, template: Template) -> bool:
    caller = _effective(caller)
    return caller is not None and template.owner_id == caller.id


def is_publicly_visible(resource) -> bool:
    """Whether anyone, including an anonymous guest, may read ``resource``."""
    if isinstance(resource, Template):
        return resource.is_active and (resource.is_public or resource.is_default)
    if isinstance(resource, Business):
        return resource.status == BUSINESS_ACTIVE
    if isinstance(resource, Service):
        return (
            resource.is_active
            and resource.deleted_at is None
            and resource.business is not None
            and resource.business.status == BUSINESS_ACTIVE
        )
    if isinstance(resource, MediaAsset):
        return resource.business is not None and is_publicly_visible(
            resource.business
        )
    return False


def can_manage(caller: Caller | None, resource) -> bool:
    """Admins manage everything; owners manage their own businesses' resources."""
    caller = _effective(caller)
    if caller is None:
        return False
    if caller.role == ROLE_ADMIN:
        return True
    if isinstance(resource, Template):
        return resource.owner_id == caller.id
    return owns_business(caller, _owning_business(resource))


def can_view(caller: Caller | None, resource) -> bool:
    """Read access: public visibility, management rights, or own reservation."""
    if is_publicly_visible(resource):
        return True
    if can_manage(caller, resource):
        return True
    caller = _effective(caller)
    if caller is None:
        return False
    if isinstance(resource, Reservation):
        return caller.role == ROLE_CLIENT and resource.client_user_id == caller.id
    return False


def can_cancel(caller: Caller | None, reservation: Reservation) -> bool:
    """Managers of the reservation plus the client who booked it."""
    if can_manage(caller, reservation):
        return True
    caller = _effective(caller)
    return caller is not None and reservation.client_user_id == caller.id


# -- Enforcement helpers ---------------------------------------------------


def _deny(caller: Caller | None, action: str, resource) -> AuthenticationError:
    logger.warning(
        "Access denied: caller %s (%s) attempted %s on %r",
        caller.id if caller else "anonymous",
        caller.role if caller else "guest",
        action,
        resource,
    )
    return AuthenticationError(f"Not authorized to {action} this resource.")


def require_role(caller: Caller | None, *role_names: str) -> Caller:
    """Return the caller if they are active and hold one of ``role_names``."""
    caller_ = _effective(caller)
    if caller_ is None or caller_.role not in role_names:
        logger.warning(
            "Access denied: caller %s (%s) requires one of: %s",
            caller.id if caller else "anonymous",
            caller.role if caller else "guest",
            ", ".join(role_names),
        )
        raise AuthenticationError(
            f"This action requires one of the roles: {', '.join(role_names)}."
        )
    return caller_


def require_view(caller: Caller | None, resource) -> None:
    if not can_view(caller, resource):
        raise _deny(caller, "view", resource)


def require_manage(caller: Caller | None, resource) -> None:
    if not can_manage(caller, resource):
        raise _deny(caller, "manage", resource)


def require_cancel(caller: Caller | None, reservation: Reservation) -> None:
    if not can_cancel(caller, reservation):
        raise _deny(caller, "cancel", reservation)
