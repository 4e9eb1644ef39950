"""
Business service — creation, publication, editing and deletion of
business sites, plus their media assets.

Slugs are derived from the business name and made unique by a unique
index; on collision a random numeric suffix is appended and the insert
retried inside a savepoint, up to ``SLUG_MAX_ATTEMPTS`` tries. A slug is
fixed once assigned so that public links keep working after a rename.

Deleting a business cascades to its services and reservations. Stored
media files are removed afterwards on a best-effort basis; failures are
reported in the returned ``BusinessDeletion`` instead of raised.
"""

import logging
import random
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Any

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app.constants import (
    ADMIN_ONLY_BUSINESS_STATUSES,
    BUSINESS_ACTIVE,
    BUSINESS_CATEGORIES,
    BUSINESS_DELETED,
    BUSINESS_DRAFT,
    BUSINESS_NAME_MAX_LENGTH,
    BUSINESS_NAME_MIN_LENGTH,
    BUSINESS_STATUSES,
    CURRENCIES,
    DEFAULT_BUSINESS_SETTINGS,
    DEFAULT_OPERATING_HOURS,
    MEDIA_KINDS,
    OPEN_RESERVATION_STATUSES,
    ROLE_ADMIN,
    ROLE_OWNER,
    WEEKDAYS,
)
from app.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from app.extensions import db
from app.models.business import Business, MediaAsset
from app.models.catalog import Service
from app.models.reservation import Reservation
from app.models.user import User
from app.services import audit_service, storage_service, template_service
from app.services.authorization_policy import (
    Caller,
    can_view,
    require_manage,
    require_role,
)
from app.services.storage_service import BatchResult
from app.utils import (
    clamp_page,
    clamp_per_page,
    is_valid_email,
    is_valid_phone,
    utcnow,
)

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

_SORTS = {
    "newest": (Business.published_at.desc(), Business.id.desc()),
    "name": (Business.name, Business.id),
}


# =========================================================================
# Result containers
# =========================================================================


@dataclass
class BusinessDeletion:
    """What a business deletion removed."""

    business_id: int
    services_deleted: int = 0
    reservations_deleted: int = 0
    open_reservations: int = 0
    storage: BatchResult = field(default_factory=BatchResult)

    def to_dict(self) -> dict:
        return {
            "business_id": self.business_id,
            "services_deleted": self.services_deleted,
            "reservations_deleted": self.reservations_deleted,
            "open_reservations": self.open_reservations,
            "storage": self.storage.to_dict(),
        }


# =========================================================================
# Slugs
# =========================================================================


def slugify(name: str) -> str:
    """
    Turn a business name into a URL slug.

    Diacritics are stripped, letters lower-cased, and every run of
    non-alphanumeric characters collapsed to one hyphen. A name with no
    usable characters yields ``business-<timestamp>``.

    >>> slugify("Barbería El Rey!")
    'barberia-el-rey'
    """
    normalized = unicodedata.normalize("NFKD", name or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text).strip("-")
    if not slug:
        slug = f"business-{int(utcnow().timestamp())}"
    return slug


def _slug_taken(slug: str) -> bool:
    return db.session.query(Business.id).filter_by(slug=slug).first() is not None


def _insert_with_unique_slug(business: Business, base_slug: str) -> None:
    """Add ``business`` under the first free slug candidate."""
    max_attempts = current_app.config["SLUG_MAX_ATTEMPTS"]
    candidate = base_slug
    for attempt in range(1, max_attempts + 1):
        if not _slug_taken(candidate):
            business.slug = candidate
            try:
                with db.session.begin_nested():
                    db.session.add(business)
                    db.session.flush()
                return
            except IntegrityError:
                # Lost a race with a concurrent insert of the same slug.
                logger.info(
                    "Slug '%s' collided on insert (attempt %d/%d)",
                    candidate,
                    attempt,
                    max_attempts,
                )
        candidate = f"{base_slug}-{random.randint(1000, 9999)}"

    raise ConflictError(
        f"Could not find a free URL for '{business.name}' after "
        f"{max_attempts} attempts. Try a different name."
    )


# =========================================================================
# Validation helpers
# =========================================================================


def _clean_name(value: Any) -> str:
    name = str(value or "").strip()
    if not BUSINESS_NAME_MIN_LENGTH <= len(name) <= BUSINESS_NAME_MAX_LENGTH:
        raise ValidationError.for_field(
            "name",
            f"Business name must be between {BUSINESS_NAME_MIN_LENGTH} and "
            f"{BUSINESS_NAME_MAX_LENGTH} characters.",
        )
    return name


def _validate_category(category: Any) -> str:
    if category not in BUSINESS_CATEGORIES:
        raise ValidationError.for_field(
            "category",
            f"Category must be one of: {', '.join(BUSINESS_CATEGORIES)}.",
        )
    return category


def _clean_contact(data: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    if "email" in data:
        email = (data.get("email") or "").strip().lower() or None
        if email is not None and not is_valid_email(email):
            raise ValidationError.for_field("email", "Invalid email format.")
        cleaned["email"] = email
    if "phone" in data:
        phone = (data.get("phone") or "").strip() or None
        if phone is not None and not is_valid_phone(phone):
            raise ValidationError.for_field("phone", "Invalid phone format.")
        cleaned["phone"] = phone
    return cleaned


def _validate_day(day: str, hours: Any) -> dict[str, Any]:
    if not isinstance(hours, dict):
        raise ValidationError.for_field(
            f"operating_hours.{day}", "Each day must be an object."
        )
    if hours.get("closed"):
        return {"open": None, "close": None, "closed": True}
    open_at, close_at = hours.get("open"), hours.get("close")
    if not (
        isinstance(open_at, str)
        and isinstance(close_at, str)
        and _TIME_RE.match(open_at)
        and _TIME_RE.match(close_at)
    ):
        raise ValidationError.for_field(
            f"operating_hours.{day}", "Times must use the HH:MM format."
        )
    if open_at >= close_at:
        raise ValidationError.for_field(
            f"operating_hours.{day}", "Opening time must be before closing time."
        )
    return {"open": open_at, "close": close_at, "closed": False}


def _merge_operating_hours(
    current: dict[str, Any] | None, updates: Any
) -> dict[str, Any]:
    if not isinstance(updates, dict):
        raise ValidationError.for_field("operating_hours", "Must be an object.")
    unknown = set(updates) - set(WEEKDAYS)
    if unknown:
        raise ValidationError.for_field(
            "operating_hours", f"Unknown day(s): {', '.join(sorted(unknown))}."
        )
    merged = dict(current or {})
    for day, hours in updates.items():
        merged[day] = _validate_day(day, {**(merged.get(day) or {}), **hours})
    return merged


def _initial_operating_hours(supplied: Any) -> dict[str, Any]:
    """A complete 7-day schedule replaces the defaults; anything else is ignored."""
    if isinstance(supplied, dict) and set(supplied) == set(WEEKDAYS):
        return {day: _validate_day(day, supplied[day]) for day in WEEKDAYS}
    return {day: dict(hours) for day, hours in DEFAULT_OPERATING_HOURS.items()}


def _merge_settings(current: dict[str, Any] | None, updates: Any) -> dict[str, Any]:
    if not isinstance(updates, dict):
        raise ValidationError.for_field("settings", "Must be an object.")
    merged = {**(current or {}), **updates}
    if merged.get("currency") not in CURRENCIES:
        raise ValidationError.for_field(
            "settings.currency", f"Currency must be one of: {', '.join(CURRENCIES)}."
        )
    return merged


def _merge_json(current: dict[str, Any] | None, updates: Any, field_name: str):
    if not isinstance(updates, dict):
        raise ValidationError.for_field(field_name, "Must be an object.")
    return {**(current or {}), **updates}


# =========================================================================
# Lookup
# =========================================================================


def _get_or_404(business_id: int) -> Business:
    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError(f"Business {business_id} not found.")
    return business


def get_business(caller: Caller | None, business_id: int) -> Business:
    """
    Return a business the caller may see.

    Unpublished businesses are reported as not found to anyone other
    than their owner or an admin, so their existence is not leaked.
    """
    business = _get_or_404(business_id)
    if not can_view(caller, business):
        raise NotFoundError(f"Business {business_id} not found.")
    return business


def get_business_by_slug(slug: str) -> Business:
    """Return the active business published under ``slug``."""
    business = Business.query.filter_by(slug=slug, status=BUSINESS_ACTIVE).first()
    if business is None:
        raise NotFoundError(f"No published business at '{slug}'.")
    return business


def list_public_businesses(
    category: str | None = None,
    city: str | None = None,
    sort: str = "newest",
    page: int = 1,
    per_page: int | None = None,
):
    """Paginate active businesses, optionally filtered by category and city."""
    query = Business.query.filter(Business.status == BUSINESS_ACTIVE)
    if category:
        query = query.filter(Business.category == _validate_category(category))
    if city:
        query = query.filter(
            func.lower(Business.location["city"].as_string()) == city.strip().lower()
        )
    query = query.order_by(*_SORTS.get(sort, _SORTS["newest"]))
    return query.paginate(
        page=clamp_page(page), per_page=clamp_per_page(per_page), error_out=False
    )


def list_businesses_for_caller(caller: Caller, page: int = 1, per_page=None):
    """Owners see their own businesses; admins see every business."""
    caller = require_role(caller, ROLE_OWNER, ROLE_ADMIN)
    query = Business.query
    if not caller.is_admin:
        query = query.filter(Business.owner_id == caller.id)
    query = query.order_by(Business.created_at.desc(), Business.id.desc())
    return query.paginate(
        page=clamp_page(page), per_page=clamp_per_page(per_page), error_out=False
    )


# =========================================================================
# Create
# =========================================================================


def create_business(caller: Caller, data: dict[str, Any]) -> Business:
    """
    Create a draft business for an owner.

    Args:
        caller: Must be an active owner.
        data:   name, category (required); description, email, phone,
                location, social_links, operating_hours, settings,
                template_id (optional).

    Returns:
        The new Business, committed.

    Raises:
        ValidationError:     Bad name, category, contact data or hours.
        AuthenticationError: Caller is not an owner.
        ConflictError:       Business limit reached or no free slug.
        NotFoundError:       No template is available.
    """
    caller = require_role(caller, ROLE_OWNER)

    name = _clean_name(data.get("name"))
    category = _validate_category(data.get("category"))
    contact = _clean_contact(data)
    operating_hours = _initial_operating_hours(data.get("operating_hours"))
    settings = _merge_settings(
        {**DEFAULT_BUSINESS_SETTINGS, "currency": current_app.config["DEFAULT_CURRENCY"]},
        data.get("settings") or {},
    )
    location = _merge_json({}, data.get("location") or {}, "location")
    social_links = _merge_json({}, data.get("social_links") or {}, "social_links")

    limit = current_app.config["MAX_BUSINESSES_PER_OWNER"]
    if limit:
        owned = Business.query.filter(
            Business.owner_id == caller.id,
            Business.status != BUSINESS_DELETED,
        ).count()
        if owned >= limit:
            raise ConflictError(
                f"Owners may hold at most {limit} business(es)."
            )

    try:
        template_id = template_service.resolve_template(caller, data.get("template_id"))

        business = Business(
            owner_id=caller.id,
            name=name,
            description=(data.get("description") or "").strip() or None,
            category=category,
            status=BUSINESS_DRAFT,
            template_id=template_id,
            location=location,
            social_links=social_links,
            operating_hours=operating_hours,
            settings=settings,
            service_count=0,
            **contact,
        )
        _insert_with_unique_slug(business, slugify(name))

        owner = db.session.get(User, caller.id)
        if owner is not None:
            owner.business_id = business.id

        audit_service.log_change(
            user_id=caller.id,
            action_type="CREATE",
            entity_type="site.business",
            entity_id=business.id,
            new_value={
                "name": name,
                "slug": business.slug,
                "category": category,
                "template_id": template_id,
            },
        )
        db.session.commit()
    except ServiceError:
        db.session.rollback()
        raise

    logger.info(
        "Created business '%s' (id=%d, slug=%s) for owner %d",
        name,
        business.id,
        business.slug,
        caller.id,
    )
    return business


# =========================================================================
# Update
# =========================================================================


def update_business(
    caller: Caller, business_id: int, data: dict[str, Any]
) -> Business:
    """
    Partially update a business.

    Omitted fields are left untouched. ``location``, ``social_links``,
    ``settings`` and ``operating_hours`` are merged key by key rather
    than replaced.
    """
    business = _get_or_404(business_id)
    require_manage(caller, business)

    previous: dict[str, Any] = {}
    changes: dict[str, Any] = {}

    def _set(key: str, value: Any) -> None:
        if getattr(business, key) != value:
            previous[key] = getattr(business, key)
            changes[key] = value
            setattr(business, key, value)

    if "name" in data:
        _set("name", _clean_name(data["name"]))
    if "description" in data:
        _set("description", (data.get("description") or "").strip() or None)
    for key, value in _clean_contact(data).items():
        _set(key, value)
    if "location" in data:
        _set("location", _merge_json(business.location, data["location"], "location"))
    if "social_links" in data:
        _set(
            "social_links",
            _merge_json(business.social_links, data["social_links"], "social_links"),
        )
    if "settings" in data:
        _set("settings", _merge_settings(business.settings, data["settings"]))
    if "operating_hours" in data:
        _set(
            "operating_hours",
            _merge_operating_hours(business.operating_hours, data["operating_hours"]),
        )

    if changes:
        audit_service.log_change(
            user_id=caller.id,
            action_type="UPDATE",
            entity_type="site.business",
            entity_id=business.id,
            previous_value=previous,
            new_value=changes,
        )
        db.session.commit()
        logger.info("Updated business %d: %s", business.id, ", ".join(changes))
    return business


def change_status(caller: Caller, business_id: int, new_status: str) -> Business:
    """
    Move a business to ``new_status``.

    Activation requires a name and a category and stamps
    ``published_at`` the first time only. Suspending, and leaving the
    suspended or deleted states, is reserved for admins.
    """
    business = _get_or_404(business_id)
    require_manage(caller, business)

    if new_status not in BUSINESS_STATUSES:
        raise ValidationError.for_field(
            "status", f"Status must be one of: {', '.join(BUSINESS_STATUSES)}."
        )
    if (
        new_status in ADMIN_ONLY_BUSINESS_STATUSES
        or business.status in ADMIN_ONLY_BUSINESS_STATUSES
    ) and not caller.is_admin:
        logger.warning(
            "Access denied: caller %d tried to move business %d from %s to %s",
            caller.id,
            business.id,
            business.status,
            new_status,
        )
        raise AuthenticationError(
            f"Only an administrator can move a business from "
            f"'{business.status}' to '{new_status}'."
        )
    if new_status == business.status:
        return business

    if new_status == BUSINESS_ACTIVE:
        if not (business.name or "").strip() or not business.category:
            raise ValidationError(
                "A business needs a name and a category before it can be published."
            )
        if business.published_at is None:
            business.published_at = utcnow()

    old_status = business.status
    business.status = new_status
    audit_service.log_change(
        user_id=caller.id,
        action_type="UPDATE",
        entity_type="site.business",
        entity_id=business.id,
        previous_value={"status": old_status},
        new_value={"status": new_status},
    )
    db.session.commit()

    logger.info(
        "Business %d status changed %s -> %s by %s %d",
        business.id,
        old_status,
        new_status,
        caller.role,
        caller.id,
    )
    return business


# =========================================================================
# Media
# =========================================================================


def add_media_asset(
    caller: Caller,
    business_id: int,
    kind: str,
    storage_key: str,
    url: str | None = None,
    caption: str | None = None,
) -> MediaAsset:
    """
    Attach an already-stored file to a business.

    A new logo or cover replaces the previous one (its file is removed
    best-effort). Gallery images are capped at ``MAX_GALLERY_IMAGES``.
    """
    business = _get_or_404(business_id)
    require_manage(caller, business)

    if kind not in MEDIA_KINDS:
        raise ValidationError.for_field(
            "kind", f"Kind must be one of: {', '.join(MEDIA_KINDS)}."
        )
    if not (storage_key or "").strip():
        raise ValidationError.for_field("storage_key", "storage_key is required.")

    replaced: list[MediaAsset] = []
    if kind == "gallery":
        limit = current_app.config["MAX_GALLERY_IMAGES"]
        gallery_count = sum(1 for asset in business.media if asset.kind == "gallery")
        if gallery_count >= limit:
            raise ConflictError(f"A gallery holds at most {limit} images.")
    else:
        replaced = [asset for asset in business.media if asset.kind == kind]

    asset = MediaAsset(
        kind=kind,
        storage_key=storage_key.strip(),
        url=url,
        caption=(caption or "").strip()[:200] or None,
    )
    business.media.append(asset)
    old_keys = [old.storage_key for old in replaced]
    for old in replaced:
        business.media.remove(old)
    db.session.flush()

    audit_service.log_change(
        user_id=caller.id,
        action_type="CREATE",
        entity_type="site.media_asset",
        entity_id=asset.id,
        new_value={"business_id": business.id, "kind": kind, "storage_key": asset.storage_key},
    )
    db.session.commit()

    if old_keys:
        storage_service.remove_assets(old_keys)
    return asset


def remove_media_asset(caller: Caller, business_id: int, asset_id: int) -> BatchResult:
    """Detach a media asset and remove its file best-effort."""
    business = _get_or_404(business_id)
    require_manage(caller, business)

    asset = db.session.get(MediaAsset, asset_id)
    if asset is None or asset.business_id != business.id:
        raise NotFoundError(f"Media asset {asset_id} not found.")

    key = asset.storage_key
    audit_service.log_change(
        user_id=caller.id,
        action_type="DELETE",
        entity_type="site.media_asset",
        entity_id=asset.id,
        previous_value={"business_id": business.id, "kind": asset.kind, "storage_key": key},
    )
    business.media.remove(asset)
    db.session.commit()

    return storage_service.remove_assets([key])


# =========================================================================
# Delete
# =========================================================================


def delete_business(caller: Caller, business_id: int) -> BusinessDeletion:
    """
    Permanently delete a business and everything under it.

    Services and their reservations are deleted with the business.
    Open (pending/confirmed) reservations do not block deletion; they
    are counted and logged so operators can follow up with clients.
    The owner's ``business_id`` reference is cleared. Stored media files
    are removed after the commit, best-effort.
    """
    business = _get_or_404(business_id)
    require_manage(caller, business)

    result = BusinessDeletion(business_id=business.id)
    media_keys = [asset.storage_key for asset in business.media]

    reservations = Reservation.query.filter_by(business_id=business.id)
    result.open_reservations = reservations.filter(
        Reservation.status.in_(OPEN_RESERVATION_STATUSES)
    ).count()
    if result.open_reservations:
        logger.warning(
            "Deleting business %d with %d open reservation(s)",
            business.id,
            result.open_reservations,
        )
    result.reservations_deleted = reservations.delete(synchronize_session="fetch")
    result.services_deleted = Service.query.filter_by(
        business_id=business.id
    ).delete(synchronize_session="fetch")

    User.query.filter_by(business_id=business.id).update(
        {User.business_id: None}, synchronize_session="fetch"
    )

    audit_service.log_change(
        user_id=caller.id,
        action_type="DELETE",
        entity_type="site.business",
        entity_id=business.id,
        previous_value={
            "name": business.name,
            "slug": business.slug,
            "owner_id": business.owner_id,
            "services_deleted": result.services_deleted,
            "reservations_deleted": result.reservations_deleted,
            "open_reservations": result.open_reservations,
        },
    )
    db.session.delete(business)
    db.session.commit()

    result.storage = storage_service.remove_assets(media_keys)

    logger.info(
        "Deleted business %d (%d services, %d reservations, %d files failed)",
        result.business_id,
        result.services_deleted,
        result.reservations_deleted,
        result.storage.failed,
    )
    return result
