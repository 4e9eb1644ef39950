"""
Catalog service — the bookable services a business offers.

The per-business quota is enforced with a conditional counter UPDATE on
``business.service_count`` so two concurrent creates cannot both pass
the check. Name uniqueness within a business is backed by a unique
constraint; the pre-check here only produces a friendlier message.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.constants import (
    CURRENCIES,
    OPEN_RESERVATION_STATUSES,
    SERVICE_NAME_MAX_LENGTH,
    SERVICE_NAME_MIN_LENGTH,
)
from app.errors import ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models.business import Business
from app.models.catalog import Service
from app.models.reservation import Reservation
from app.services import audit_service
from app.services.authorization_policy import (
    Caller,
    can_manage,
    require_manage,
    require_view,
)
from app.utils import parse_decimal, parse_int, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ServiceDeletion:
    """
    Outcome of ``delete_service``.

    ``hard_deleted`` is False when open reservations forced a soft
    delete; ``active_reservations`` is how many were blocking.
    ``detached_reservations`` counts finished reservations kept as
    history after a hard delete.
    """

    service_id: int
    hard_deleted: bool
    active_reservations: int = 0
    detached_reservations: int = 0

    def to_dict(self) -> dict:
        return {
            "service_id": self.service_id,
            "hard_deleted": self.hard_deleted,
            "active_reservations": self.active_reservations,
            "detached_reservations": self.detached_reservations,
        }


# -- Validation ------------------------------------------------------------


def _clean_name(value: Any) -> str:
    name = str(value or "").strip()
    if not SERVICE_NAME_MIN_LENGTH <= len(name) <= SERVICE_NAME_MAX_LENGTH:
        raise ValidationError.for_field(
            "name",
            f"Service name must be between {SERVICE_NAME_MIN_LENGTH} and "
            f"{SERVICE_NAME_MAX_LENGTH} characters.",
        )
    return name


def validate_price(value: Any) -> Decimal:
    """Prices are non-negative amounts with at most two decimals."""
    price = parse_decimal(value, "price")
    if price < 0:
        raise ValidationError.for_field("price", "Price cannot be negative.")
    if price != price.quantize(Decimal("0.01")):
        raise ValidationError.for_field("price", "Price allows at most two decimals.")
    return price


def validate_duration(value: Any) -> int:
    """
    Durations are whole minutes, a multiple of the configured step, and
    within ``[MIN_SERVICE_DURATION, MAX_SERVICE_DURATION]``.
    """
    duration = parse_int(value, "duration")
    config = current_app.config
    minimum = config["MIN_SERVICE_DURATION"]
    maximum = config["MAX_SERVICE_DURATION"]
    step = config["SERVICE_DURATION_STEP"]
    if not minimum <= duration <= maximum:
        raise ValidationError.for_field(
            "duration",
            f"Duration must be between {minimum} and {maximum} minutes.",
        )
    if duration % step:
        raise ValidationError.for_field(
            "duration", f"Duration must be a multiple of {step} minutes."
        )
    return duration


def _validate_currency(value: Any) -> str:
    if value not in CURRENCIES:
        raise ValidationError.for_field(
            "currency", f"Currency must be one of: {', '.join(CURRENCIES)}."
        )
    return value


def _ensure_unique_name(business_id: int, name: str, exclude_id: int | None = None):
    query = Service.query.filter(
        Service.business_id == business_id,
        db.func.lower(Service.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Service.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"A service named '{name}' already exists.")


# -- Quota counter ---------------------------------------------------------


def _reserve_quota_slot(business_id: int) -> None:
    """Atomically claim one service slot or raise ConflictError."""
    limit = current_app.config["MAX_SERVICES_PER_BUSINESS"]
    claimed = (
        Business.query.filter(
            Business.id == business_id,
            Business.service_count < limit,
        ).update(
            {Business.service_count: Business.service_count + 1},
            synchronize_session=False,
        )
    )
    if claimed == 0:
        raise ConflictError(
            f"A business can offer at most {limit} services."
        )


def _release_quota_slot(business_id: int) -> None:
    Business.query.filter(
        Business.id == business_id,
        Business.service_count > 0,
    ).update(
        {Business.service_count: Business.service_count - 1},
        synchronize_session=False,
    )


# -- Lookup ----------------------------------------------------------------


def _get_business_or_404(business_id: int) -> Business:
    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError(f"Business {business_id} not found.")
    return business


def _get_or_404(service_id: int) -> Service:
    service = db.session.get(Service, service_id)
    if service is None:
        raise NotFoundError(f"Service {service_id} not found.")
    return service


def get_service(caller: Caller | None, service_id: int) -> Service:
    """Return a service visible to the caller."""
    service = _get_or_404(service_id)
    require_view(caller, service)
    return service


def list_services(
    caller: Caller | None, business_id: int, include_inactive: bool = False
) -> list[Service]:
    """
    List a business's services in display order.

    Managers may ask for inactive and soft-deleted services; everyone
    else only sees active services of a published business.
    """
    business = _get_business_or_404(business_id)
    query = Service.query.filter(Service.business_id == business.id)

    if not (include_inactive and can_manage(caller, business)):
        require_view(caller, business)
        query = query.filter(
            Service.is_active == True,  # noqa: E712  pylint: disable=singleton-comparison
            Service.deleted_at.is_(None),
        )
    return query.order_by(Service.sort_order, Service.name).all()


# -- Mutations -------------------------------------------------------------


def create_service(caller: Caller, business_id: int, data: dict[str, Any]) -> Service:
    """
    Add a service to a business.

    Raises:
        ValidationError:     Bad name, price or duration.
        AuthenticationError: Caller does not manage the business.
        ConflictError:       Name already used, or quota reached.
    """
    business = _get_business_or_404(business_id)
    require_manage(caller, business)

    name = _clean_name(data.get("name"))
    price = validate_price(data.get("price"))
    duration = validate_duration(data.get("duration"))
    currency = _validate_currency(
        data.get("currency")
        or (business.settings or {}).get("currency")
        or current_app.config["DEFAULT_CURRENCY"]
    )
    _ensure_unique_name(business.id, name)

    try:
        _reserve_quota_slot(business.id)
        service = Service(
            business_id=business.id,
            name=name,
            description=(data.get("description") or "").strip()[:500] or None,
            category=(data.get("category") or "").strip() or None,
            price=price,
            duration=duration,
            currency=currency,
            is_active=bool(data.get("is_active", True)),
            sort_order=parse_int(data.get("sort_order", 0), "sort_order"),
        )
        db.session.add(service)
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"A service named '{name}' already exists.") from exc
    except ConflictError:
        db.session.rollback()
        raise
    db.session.expire(business, ["service_count"])

    audit_service.log_change(
        user_id=caller.id,
        action_type="CREATE",
        entity_type="catalog.service",
        entity_id=service.id,
        new_value={
            "business_id": business.id,
            "name": name,
            "price": str(price),
            "duration": duration,
        },
    )
    db.session.commit()

    logger.info(
        "Created service '%s' (id=%d) for business %d", name, service.id, business.id
    )
    return service


def update_service(caller: Caller, service_id: int, data: dict[str, Any]) -> Service:
    """
    Partially update a service.

    Existing reservations keep the price and duration they were booked
    with; only future bookings see the new values.
    """
    service = _get_or_404(service_id)
    require_manage(caller, service)

    updates: dict[str, Any] = {}
    if "name" in data:
        name = _clean_name(data["name"])
        if name != service.name:
            _ensure_unique_name(service.business_id, name, exclude_id=service.id)
        updates["name"] = name
    if "price" in data:
        updates["price"] = validate_price(data["price"])
    if "duration" in data:
        updates["duration"] = validate_duration(data["duration"])
    if "currency" in data:
        updates["currency"] = _validate_currency(data["currency"])
    if "description" in data:
        updates["description"] = (data.get("description") or "").strip()[:500] or None
    if "category" in data:
        updates["category"] = (data.get("category") or "").strip() or None
    if "sort_order" in data:
        updates["sort_order"] = parse_int(data["sort_order"], "sort_order")

    previous: dict[str, Any] = {}
    changes: dict[str, Any] = {}
    for key, value in updates.items():
        if getattr(service, key) != value:
            previous[key] = getattr(service, key)
            changes[key] = value
            setattr(service, key, value)

    if not changes:
        return service

    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(
            f"A service named '{changes.get('name')}' already exists."
        ) from exc

    audit_service.log_change(
        user_id=caller.id,
        action_type="UPDATE",
        entity_type="catalog.service",
        entity_id=service.id,
        previous_value=previous,
        new_value=changes,
    )
    db.session.commit()
    logger.info("Updated service %d: %s", service.id, ", ".join(changes))
    return service


def set_service_active(caller: Caller, service_id: int, is_active: bool) -> Service:
    """Show or hide a service without deleting it."""
    service = _get_or_404(service_id)
    require_manage(caller, service)

    if service.deleted_at is not None and is_active:
        raise ConflictError("A deleted service cannot be reactivated.")
    if service.is_active == bool(is_active):
        return service

    service.is_active = bool(is_active)
    audit_service.log_change(
        user_id=caller.id,
        action_type="UPDATE",
        entity_type="catalog.service",
        entity_id=service.id,
        previous_value={"is_active": not service.is_active},
        new_value={"is_active": service.is_active},
    )
    db.session.commit()
    return service


def delete_service(caller: Caller, service_id: int) -> ServiceDeletion:
    """
    Delete a service.

    If pending or confirmed reservations still reference it, the service
    is only deactivated and stamped ``deleted_at``; the caller learns how
    many reservations blocked the hard delete. Otherwise the row is
    removed and the quota slot released. Finished reservations stay as
    booking history with their service reference cleared.
    """
    service = _get_or_404(service_id)
    require_manage(caller, service)

    active = Reservation.query.filter(
        Reservation.service_id == service.id,
        Reservation.status.in_(OPEN_RESERVATION_STATUSES),
    ).count()

    snapshot = {
        "business_id": service.business_id,
        "name": service.name,
        "price": str(service.price),
        "duration": service.duration,
    }

    if active:
        if service.deleted_at is None:
            service.is_active = False
            service.deleted_at = utcnow()
            audit_service.log_change(
                user_id=caller.id,
                action_type="UPDATE",
                entity_type="catalog.service",
                entity_id=service.id,
                previous_value=snapshot,
                new_value={"is_active": False, "soft_deleted": True},
            )
            db.session.commit()
        logger.info(
            "Soft-deleted service %d: %d open reservation(s)", service.id, active
        )
        return ServiceDeletion(
            service_id=service.id, hard_deleted=False, active_reservations=active
        )

    service_id_ = service.id
    business_id = service.business_id
    kept = Reservation.query.filter_by(service_id=service_id_).update(
        {"service_id": None}, synchronize_session="fetch"
    )
    audit_service.log_change(
        user_id=caller.id,
        action_type="DELETE",
        entity_type="catalog.service",
        entity_id=service_id_,
        previous_value=snapshot,
        new_value={"detached_reservations": kept},
    )
    db.session.delete(service)
    _release_quota_slot(business_id)
    business = db.session.get(Business, business_id)
    if business is not None:
        db.session.expire(business, ["service_count"])
    db.session.commit()

    logger.info(
        "Deleted service %d from business %d; %d reservation(s) kept as history",
        service_id_,
        business_id,
        kept,
    )
    return ServiceDeletion(
        service_id=service_id_, hard_deleted=True, detached_reservations=kept
    )
