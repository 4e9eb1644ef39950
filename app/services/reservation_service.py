"""
Reservation service — booking, listing and the reservation state machine.

Allowed status moves::

    pending    -> confirmed | cancelled
    confirmed  -> completed | cancelled | no_show
    cancelled, completed, no_show: terminal

Owners and admins drive the machine through ``update_status``; the
booking client may additionally cancel through ``cancel_reservation``.
Every write is guarded by the reservation's ``version`` column, so a
concurrent change surfaces as ``ConflictError`` instead of a lost
update.
"""

import logging
from contextlib import contextmanager
from typing import Any

from flask import current_app
from sqlalchemy import false, func
from sqlalchemy.orm.exc import StaleDataError

from app.constants import (
    CANCELLATION_REASON_MAX_LENGTH,
    PAYMENT_METHODS,
    RES_CANCELLED,
    RES_COMPLETED,
    RES_CONFIRMED,
    RES_PENDING,
    RESERVATION_NOTES_MAX_LENGTH,
    RESERVATION_SOURCES,
    RESERVATION_STATUSES,
    ROLE_ADMIN,
    ROLE_CLIENT,
    ROLE_OWNER,
)
from app.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.extensions import db
from app.models.business import Business
from app.models.catalog import Service
from app.models.reservation import GuestClient, RegisteredClient, Reservation
from app.models.user import User
from app.services import audit_service
from app.services.authorization_policy import (
    Caller,
    can_manage,
    can_view,
    require_cancel,
    require_manage,
    require_role,
    require_view,
)
from app.utils import (
    clamp_page,
    clamp_per_page,
    is_valid_email,
    is_valid_phone,
    parse_datetime,
    parse_int,
    utcnow,
)

logger = logging.getLogger(__name__)

_GUEST_FIELDS = ("guest_name", "guest_email", "guest_phone")

# Reservation listings default to a shorter page than the catalog.
_RESERVATION_PAGE_SIZE = 10


# -- Helpers ---------------------------------------------------------------


def _get_or_404(reservation_id: int) -> Reservation:
    reservation = db.session.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found.")
    return reservation


@contextmanager
def _versioned_write(reservation: Reservation):
    """
    Run a reservation write and commit it, turning a lost race into
    ConflictError.

    The stale row can surface on any flush inside the block (the audit
    entry flushes the session), not only on the final commit.
    """
    reservation_id = reservation.id
    try:
        yield
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning(
            "Reservation %s was modified concurrently; write rejected", reservation_id
        )
        raise ConflictError(
            "The reservation was changed by someone else. Reload and try again."
        ) from exc


def _guest_from(data: dict[str, Any]) -> GuestClient | None:
    """Build a GuestClient from request data, or None if no guest field is set."""
    guest = data.get("guest")
    if isinstance(guest, dict):
        values = {
            "guest_name": guest.get("name"),
            "guest_email": guest.get("email"),
            "guest_phone": guest.get("phone"),
        }
    else:
        values = {key: data.get(key) for key in _GUEST_FIELDS}
    values = {key: (str(value).strip() if value else "") for key, value in values.items()}

    if not any(values.values()):
        return None
    missing = [key for key, value in values.items() if not value]
    if missing:
        raise ValidationError(
            "Guest bookings need a name, an email and a phone number.",
            details=[{"field": key, "message": "Required."} for key in missing],
        )
    if not is_valid_email(values["guest_email"]):
        raise ValidationError.for_field("guest_email", "Invalid email format.")
    if not is_valid_phone(values["guest_phone"]):
        raise ValidationError.for_field("guest_phone", "Invalid phone format.")
    return GuestClient(
        name=values["guest_name"][:100],
        email=values["guest_email"].lower(),
        phone=values["guest_phone"],
    )


def _resolve_client(
    caller: Caller | None, business: Business, data: dict[str, Any]
) -> RegisteredClient | GuestClient:
    """
    Work out who holds the new reservation.

    - No caller: a guest; name, email and phone are required.
    - Client caller: the caller themself; guest data is rejected.
    - Owner/admin: exactly one of ``client_user_id`` or guest data.
    """
    guest = _guest_from(data)
    client_user_id = data.get("client_user_id")

    if caller is None or not caller.is_active:
        if client_user_id is not None:
            raise ValidationError.for_field(
                "client_user_id", "Sign in to book as a registered client."
            )
        if guest is None:
            raise ValidationError(
                "Guest bookings need a name, an email and a phone number."
            )
        return guest

    if caller.role == ROLE_CLIENT:
        if guest is not None or client_user_id not in (None, caller.id):
            raise ValidationError(
                "A registered client books for themself; guest details are not accepted."
            )
        return RegisteredClient(user_id=caller.id)

    if not can_manage(caller, business):
        raise AuthenticationError(
            "Owners can only create reservations for their own businesses."
        )
    if (guest is None) == (client_user_id is None):
        raise ValidationError(
            "Provide either client_user_id or guest details, not both or neither."
        )
    if guest is not None:
        return guest

    user_id = parse_int(client_user_id, "client_user_id")
    user = db.session.get(User, user_id)
    if user is None or user.role != ROLE_CLIENT or not user.is_active:
        raise NotFoundError(f"Client {user_id} not found.")
    return RegisteredClient(user_id=user.id)


# -- Create ----------------------------------------------------------------


def create_reservation(caller: Caller | None, data: dict[str, Any]) -> Reservation:
    """
    Book a service.

    Args:
        caller: A registered client, None for a guest, or the business's
                owner/admin booking on a client's behalf.
        data:   business_id, service_id, date_time (required); notes,
                payment_method, source, client_user_id or guest details.

    Returns:
        The new pending reservation, with price and duration copied from
        the service.
    """
    if data.get("business_id") is None or data.get("service_id") is None:
        raise ValidationError("business_id, service_id and date_time are required.")
    business_id = parse_int(data["business_id"], "business_id")
    service_id = parse_int(data["service_id"], "service_id")
    when = parse_datetime(data.get("date_time"), "date_time")
    if when <= utcnow():
        raise ValidationError.for_field("date_time", "date_time must be in the future.")

    business = db.session.get(Business, business_id)
    if business is None or not can_view(caller, business):
        raise NotFoundError(f"Business {business_id} not found.")
    service = db.session.get(Service, service_id)
    if service is None or service.business_id != business.id:
        raise NotFoundError(f"Service {service_id} not found for this business.")
    if not service.is_active or service.deleted_at is not None:
        raise ConflictError("This service is not currently bookable.")

    client = _resolve_client(caller, business, data)

    managing = can_manage(caller, business)
    if not managing and not (business.settings or {}).get("allow_online_booking", True):
        raise ConflictError("This business does not accept online bookings.")

    payment_method = data.get("payment_method") or "cash"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError.for_field(
            "payment_method", f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}."
        )
    source = data.get("source") or ("admin" if managing else "web")
    if source not in RESERVATION_SOURCES:
        raise ValidationError.for_field(
            "source", f"Source must be one of: {', '.join(RESERVATION_SOURCES)}."
        )
    notes = (data.get("notes") or "").strip() or None
    if notes and len(notes) > RESERVATION_NOTES_MAX_LENGTH:
        raise ValidationError.for_field(
            "notes", f"Notes allow at most {RESERVATION_NOTES_MAX_LENGTH} characters."
        )

    reservation = Reservation(
        business_id=business.id,
        service_id=service.id,
        date_time=when,
        duration=service.duration,
        price=service.price,
        currency=service.currency or current_app.config["DEFAULT_CURRENCY"],
        payment_method=payment_method,
        is_paid=False,
        status=RES_PENDING,
        notes=notes,
        source=source,
    )
    reservation.client = client
    db.session.add(reservation)
    db.session.flush()

    audit_service.log_change(
        user_id=caller.id if caller else None,
        action_type="CREATE",
        entity_type="booking.reservation",
        entity_id=reservation.id,
        new_value={
            "business_id": business.id,
            "service_id": service.id,
            "date_time": when.isoformat(),
            "price": str(reservation.price),
            "duration": reservation.duration,
            "client": client.to_dict(),
        },
    )
    db.session.commit()

    logger.info(
        "Created reservation %d for service %d at %s (%s)",
        reservation.id,
        service.id,
        when.isoformat(),
        "guest" if isinstance(client, GuestClient) else f"user {client.user_id}",
    )
    return reservation


# -- Read ------------------------------------------------------------------


def get_reservation(caller: Caller | None, reservation_id: int) -> Reservation:
    """Return a reservation the caller may see."""
    reservation = _get_or_404(reservation_id)
    require_view(caller, reservation)
    return reservation


def list_reservations(
    caller: Caller,
    filters: dict[str, Any] | None = None,
    page: int = 1,
    per_page: int | None = None,
):
    """
    Paginate reservations for business staff, soonest first.

    Admins see all; owners only their own businesses' reservations. An
    owner filtering on somebody else's business gets an empty page.

    Filters: business_id, service_id, status, date_from, date_to.
    """
    caller = require_role(caller, ROLE_OWNER, ROLE_ADMIN)
    filters = filters or {}

    query = Reservation.query
    if not caller.is_admin:
        owned_ids = db.session.query(Business.id).filter(Business.owner_id == caller.id)
        query = query.filter(Reservation.business_id.in_(owned_ids.scalar_subquery()))

    if filters.get("business_id") is not None:
        business_id = parse_int(filters["business_id"], "business_id")
        business = db.session.get(Business, business_id)
        if business is None or not can_manage(caller, business):
            query = query.filter(false())
        else:
            query = query.filter(Reservation.business_id == business_id)
    if filters.get("service_id") is not None:
        query = query.filter(
            Reservation.service_id == parse_int(filters["service_id"], "service_id")
        )
    if filters.get("status"):
        if filters["status"] not in RESERVATION_STATUSES:
            raise ValidationError.for_field(
                "status", f"Status must be one of: {', '.join(RESERVATION_STATUSES)}."
            )
        query = query.filter(Reservation.status == filters["status"])
    if filters.get("date_from"):
        query = query.filter(
            Reservation.date_time >= parse_datetime(filters["date_from"], "date_from")
        )
    if filters.get("date_to"):
        query = query.filter(
            Reservation.date_time <= parse_datetime(filters["date_to"], "date_to")
        )

    query = query.order_by(Reservation.date_time, Reservation.id)
    return query.paginate(
        page=clamp_page(page),
        per_page=clamp_per_page(per_page, default=_RESERVATION_PAGE_SIZE),
        error_out=False,
    )


def list_my_reservations(
    caller: Caller,
    status: str | None = None,
    page: int = 1,
    per_page: int | None = None,
):
    """Paginate the calling client's own reservations, latest first."""
    caller = require_role(caller, ROLE_CLIENT)
    query = Reservation.query.filter(Reservation.client_user_id == caller.id)
    if status:
        if status not in RESERVATION_STATUSES:
            raise ValidationError.for_field(
                "status", f"Status must be one of: {', '.join(RESERVATION_STATUSES)}."
            )
        query = query.filter(Reservation.status == status)
    query = query.order_by(Reservation.date_time.desc(), Reservation.id.desc())
    return query.paginate(
        page=clamp_page(page),
        per_page=clamp_per_page(per_page, default=_RESERVATION_PAGE_SIZE),
        error_out=False,
    )


# -- State machine ---------------------------------------------------------


def _check_transition(reservation: Reservation, new_status: str) -> None:
    if reservation.status == RES_CANCELLED and new_status == RES_CANCELLED:
        raise ConflictError("Reservation is already cancelled.")
    if not reservation.can_transition_to(new_status):
        raise ConflictError(
            f"Cannot move a reservation from '{reservation.status}' to '{new_status}'."
        )


def _apply_status(
    reservation: Reservation,
    new_status: str,
    actor_id: int,
    reason: str | None = None,
) -> None:
    now = utcnow()
    reservation.status = new_status
    if new_status == RES_CONFIRMED:
        reservation.confirmed_at = now
        reservation.confirmed_by = actor_id
    elif new_status == RES_CANCELLED:
        reservation.cancelled_at = now
        reservation.cancelled_by = actor_id
        reservation.cancellation_reason = reason
    elif new_status == RES_COMPLETED:
        reservation.completed_at = now


def _clean_reason(reason: Any) -> str | None:
    text = str(reason or "").strip() or None
    if text and len(text) > CANCELLATION_REASON_MAX_LENGTH:
        raise ValidationError.for_field(
            "reason",
            f"Cancellation reason allows at most {CANCELLATION_REASON_MAX_LENGTH} characters.",
        )
    return text


def update_status(
    caller: Caller,
    reservation_id: int,
    new_status: str,
    reason: str | None = None,
) -> Reservation:
    """
    Move a reservation along the state machine (owner/admin only).

    Raises:
        ValidationError:     Unknown status.
        AuthenticationError: Caller does not manage the business.
        ConflictError:       Transition not allowed, or a concurrent write.
    """
    reservation = _get_or_404(reservation_id)
    require_manage(caller, reservation)

    if new_status not in RESERVATION_STATUSES:
        raise ValidationError.for_field(
            "status", f"Status must be one of: {', '.join(RESERVATION_STATUSES)}."
        )
    _check_transition(reservation, new_status)
    reason = _clean_reason(reason) if new_status == RES_CANCELLED else None

    old_status = reservation.status
    with _versioned_write(reservation):
        _apply_status(reservation, new_status, caller.id, reason)
        audit_service.log_change(
            user_id=caller.id,
            action_type="UPDATE",
            entity_type="booking.reservation",
            entity_id=reservation.id,
            previous_value={"status": old_status},
            new_value={"status": new_status},
        )

    logger.info(
        "Reservation %d: %s -> %s by %s %d",
        reservation.id,
        old_status,
        new_status,
        caller.role,
        caller.id,
    )
    return reservation


def cancel_reservation(
    caller: Caller, reservation_id: int, reason: str | None = None
) -> Reservation:
    """
    Cancel a reservation on behalf of staff or the booking client.

    A reservation can be cancelled once; cancelling a cancelled or
    otherwise finished reservation raises ConflictError.
    """
    reservation = _get_or_404(reservation_id)
    require_cancel(caller, reservation)
    _check_transition(reservation, RES_CANCELLED)
    reason = _clean_reason(reason)

    old_status = reservation.status
    with _versioned_write(reservation):
        _apply_status(reservation, RES_CANCELLED, caller.id, reason)
        audit_service.log_change(
            user_id=caller.id,
            action_type="UPDATE",
            entity_type="booking.reservation",
            entity_id=reservation.id,
            previous_value={"status": old_status},
            new_value={"status": RES_CANCELLED, "reason": reason},
        )

    logger.info(
        "Reservation %d cancelled by %s %d", reservation.id, caller.role, caller.id
    )
    return reservation


# -- Reporting -------------------------------------------------------------


def get_reservation_stats(caller: Caller, business_id: int) -> dict[str, Any]:
    """
    Count reservations, snapshot revenue and average duration per status
    for one business.
    """
    if business_id is None:
        raise ValidationError.for_field("business_id", "business_id is required.")
    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError(f"Business {business_id} not found.")
    require_manage(caller, business)

    rows = (
        db.session.query(
            Reservation.status,
            func.count(Reservation.id),
            func.coalesce(func.sum(Reservation.price), 0),
            func.avg(Reservation.duration),
        )
        .filter(Reservation.business_id == business.id)
        .group_by(Reservation.status)
        .all()
    )

    by_status = {
        status: {"count": 0, "revenue": "0", "avg_duration": None}
        for status in RESERVATION_STATUSES
    }
    total = 0
    for status, count, revenue, avg_duration in rows:
        by_status[status] = {
            "count": count,
            "revenue": str(revenue),
            "avg_duration": round(float(avg_duration), 1) if avg_duration else None,
        }
        total += count
    return {"business_id": business.id, "total": total, "by_status": by_status}
