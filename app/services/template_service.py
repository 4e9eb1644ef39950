"""
Template service — template resolution for new businesses plus the
template catalog (create, browse, edit, duplicate, rate).

``resolve_template`` is the algorithm every business creation runs:

  1. If a template reference was supplied and it is active and usable
     by the caller (public, default, owned, or caller is admin), use it.
  2. Otherwise take the best active public template, ordered by
     ``is_default`` desc, then ``rating`` desc, then ``id`` asc.
  3. If nothing qualifies, raise ``NotFoundError``.
  4. Record usage on the selected template. Usage tracking is
     best-effort: a failure is logged and never fails the caller.
"""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from app.constants import (
    BUSINESS_CATEGORIES,
    DEFAULT_TEMPLATE_COLORS,
    DEFAULT_TEMPLATE_SECTIONS,
    ROLE_ADMIN,
    ROLE_CLIENT,
    ROLE_OWNER,
    TEMPLATE_CATEGORIES,
    UNIVERSAL_TEMPLATE_NAME,
)
from app.errors import ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models.business import Business
from app.models.template import Template
from app.services import audit_service
from app.services.authorization_policy import (
    Caller,
    owns_template,
    require_manage,
    require_role,
    require_view,
)
from app.utils import clamp_page, clamp_per_page, parse_int, utcnow

logger = logging.getLogger(__name__)

_SORTS = {
    "popular": (Template.times_used.desc(), Template.id),
    "rating": (Template.rating.desc(), Template.review_count.desc(), Template.id),
    "newest": (Template.created_at.desc(), Template.id.desc()),
}


# -- Resolution ------------------------------------------------------------


def _is_usable(caller: Caller | None, template: Template) -> bool:
    if not template.is_active:
        return False
    if template.is_public or template.is_default:
        return True
    if caller is not None and caller.is_admin:
        return True
    return owns_template(caller, template)


def _fallback_template() -> Template | None:
    return (
        Template.query.filter(
            Template.is_active == True,  # noqa: E712  pylint: disable=singleton-comparison
            Template.is_public == True,  # noqa: E712  pylint: disable=singleton-comparison
        )
        .order_by(
            Template.is_default.desc(),
            Template.rating.desc(),
            Template.id,
        )
        .first()
    )


def resolve_template(caller: Caller | None, template_id: int | None = None) -> int:
    """
    Pick the template a new business will be rendered with.

    Args:
        caller:      The identity creating the business.
        template_id: Optional requested template. An unusable or missing
                     reference silently falls back to the default.

    Returns:
        The selected template's primary key.

    Raises:
        NotFoundError: If no template is usable at all.
    """
    selected = None
    if template_id is not None:
        template_id = parse_int(template_id, "template_id")
        candidate = db.session.get(Template, template_id)
        if candidate is not None and _is_usable(caller, candidate):
            selected = candidate
        else:
            logger.info(
                "Template %s not usable by caller %s; falling back to default",
                template_id,
                caller.id if caller else None,
            )

    if selected is None:
        selected = _fallback_template()

    if selected is None:
        raise NotFoundError("No templates available")

    record_usage(selected.id)
    return selected.id


def record_usage(template_id: int) -> bool:
    """
    Increment ``times_used`` and stamp ``last_used_at`` in one SQL UPDATE.

    Runs inside a savepoint so a failure only rolls back this statement.

    Returns:
        True if the counter was updated, False if the update failed.
    """
    try:
        with db.session.begin_nested():
            Template.query.filter_by(id=template_id).update(
                {
                    Template.times_used: Template.times_used + 1,
                    Template.last_used_at: utcnow(),
                },
                synchronize_session=False,
            )
    except SQLAlchemyError as exc:
        logger.warning("Could not record usage of template %s: %s", template_id, exc)
        return False
    return True


# -- Lookup ----------------------------------------------------------------


def _get_or_404(template_id: int) -> Template:
    template = db.session.get(Template, template_id)
    if template is None:
        raise NotFoundError(f"Template {template_id} not found.")
    return template


def get_template(caller: Caller | None, template_id: int) -> Template:
    """Return a template visible to the caller."""
    template = _get_or_404(template_id)
    require_view(caller, template)
    return template


def list_public_templates(
    category: str | None = None,
    business_type: str | None = None,
    sort: str = "popular",
    page: int = 1,
    per_page: int | None = None,
):
    """Paginate active public templates, most used first by default."""
    query = Template.query.filter(
        Template.is_active == True,  # noqa: E712  pylint: disable=singleton-comparison
        Template.is_public == True,  # noqa: E712  pylint: disable=singleton-comparison
    )
    if category:
        query = query.filter(Template.category == category)
    if business_type:
        query = query.filter(
            db.or_(
                Template.business_type == business_type,
                Template.business_type.is_(None),
            )
        )
    query = query.order_by(*_SORTS.get(sort, _SORTS["popular"]))
    return query.paginate(
        page=clamp_page(page), per_page=clamp_per_page(per_page), error_out=False
    )


def list_my_templates(caller: Caller) -> list[Template]:
    """Return every template the caller owns, newest first."""
    require_role(caller, ROLE_OWNER, ROLE_ADMIN)
    return (
        Template.query.filter_by(owner_id=caller.id)
        .order_by(Template.created_at.desc(), Template.id.desc())
        .all()
    )


def get_default_template(business_type: str | None = None) -> Template:
    """
    Return the default template for a business type.

    Prefers an active default template tagged with ``business_type``;
    otherwise the universal default (no business type).
    """
    base = Template.query.filter(
        Template.is_active == True,  # noqa: E712  pylint: disable=singleton-comparison
        Template.is_default == True,  # noqa: E712  pylint: disable=singleton-comparison
    )
    template = None
    if business_type:
        template = (
            base.filter(Template.business_type == business_type)
            .order_by(Template.id)
            .first()
        )
    if template is None:
        template = (
            base.filter(Template.business_type.is_(None)).order_by(Template.id).first()
        )
    if template is None:
        raise NotFoundError("No default template configured.")
    return template


# -- Mutations -------------------------------------------------------------


_TEMPLATE_FLAGS = ("is_public", "is_default", "is_premium", "is_active")


def _validate_fields(data: dict[str, Any], partial: bool) -> None:
    if not partial or "name" in data:
        name = str(data.get("name") or "").strip()
        if not 2 <= len(name) <= 100:
            raise ValidationError.for_field(
                "name", "Template name must be between 2 and 100 characters."
            )
    if "category" in data and data["category"] not in TEMPLATE_CATEGORIES:
        raise ValidationError.for_field(
            "category",
            f"Category must be one of: {', '.join(TEMPLATE_CATEGORIES)}.",
        )
    business_type = data.get("business_type")
    if business_type is not None and business_type not in BUSINESS_CATEGORIES:
        raise ValidationError.for_field(
            "business_type",
            f"Business type must be one of: {', '.join(BUSINESS_CATEGORIES)}.",
        )
    if "sections" in data and not isinstance(data["sections"], list):
        raise ValidationError.for_field("sections", "Sections must be a list.")
    for key in ("colors", "typography"):
        if key in data and not isinstance(data[key], dict):
            raise ValidationError.for_field(key, f"{key} must be an object.")
    for key in _TEMPLATE_FLAGS:
        if key in data and not isinstance(data[key], bool):
            raise ValidationError.for_field(key, f"{key} must be true or false.")


def _ensure_unique_name(owner_id: int | None, name: str, exclude_id: int | None = None):
    query = Template.query.filter(
        Template.owner_id == owner_id, Template.name == name
    )
    if exclude_id is not None:
        query = query.filter(Template.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"You already have a template named '{name}'.")


def create_template(caller: Caller, data: dict[str, Any]) -> Template:
    """
    Create a template owned by the caller.

    ``is_public``, ``is_default`` and ``is_premium`` are honoured only
    for admins; everyone else gets a private template.
    """
    require_role(caller, ROLE_OWNER, ROLE_ADMIN)
    _validate_fields(data, partial=False)

    name = str(data["name"]).strip()
    _ensure_unique_name(caller.id, name)

    is_admin = caller.is_admin
    template = Template(
        owner_id=caller.id,
        name=name,
        description=data.get("description"),
        category=data.get("category") or "modern",
        business_type=data.get("business_type"),
        is_public=bool(data.get("is_public")) if is_admin else False,
        is_default=bool(data.get("is_default")) if is_admin else False,
        is_premium=bool(data.get("is_premium")) if is_admin else False,
        colors=data.get("colors") or dict(DEFAULT_TEMPLATE_COLORS),
        typography=data.get("typography") or {},
        sections=data.get("sections") or [dict(s) for s in DEFAULT_TEMPLATE_SECTIONS],
    )
    db.session.add(template)
    db.session.flush()

    audit_service.log_change(
        user_id=caller.id,
        action_type="CREATE",
        entity_type="site.template",
        entity_id=template.id,
        new_value={"name": name, "is_public": template.is_public},
    )
    db.session.commit()

    logger.info("Created template '%s' (id=%d) for user %d", name, template.id, caller.id)
    return template


def update_template(caller: Caller, template_id: int, data: dict[str, Any]) -> Template:
    """Partially update a template. Only admins may change visibility flags."""
    template = _get_or_404(template_id)
    require_manage(caller, template)
    _validate_fields(data, partial=True)

    if not caller.is_admin and any(
        key in data for key in ("is_public", "is_default", "is_premium")
    ):
        raise ValidationError(
            "Only an administrator can change template visibility."
        )

    changes: dict[str, Any] = {}
    previous: dict[str, Any] = {}
    if "name" in data:
        name = str(data["name"]).strip()
        if name != template.name:
            _ensure_unique_name(template.owner_id, name, exclude_id=template.id)
        data = {**data, "name": name}

    for key in (
        "name",
        "description",
        "category",
        "business_type",
        "colors",
        "typography",
        "sections",
        "is_public",
        "is_default",
        "is_premium",
        "is_active",
    ):
        if key in data and getattr(template, key) != data[key]:
            previous[key] = getattr(template, key)
            changes[key] = data[key]
            setattr(template, key, data[key])

    if changes:
        audit_service.log_change(
            user_id=caller.id,
            action_type="UPDATE",
            entity_type="site.template",
            entity_id=template.id,
            previous_value=previous,
            new_value=changes,
        )
        db.session.commit()
        logger.info("Updated template %d: %s", template.id, ", ".join(changes))
    return template


def delete_template(caller: Caller, template_id: int) -> None:
    """Delete a template that no business references."""
    template = _get_or_404(template_id)
    require_manage(caller, template)

    in_use = Business.query.filter_by(template_id=template.id).count()
    if in_use:
        raise ConflictError(
            f"Template is used by {in_use} business(es) and cannot be deleted."
        )

    audit_service.log_change(
        user_id=caller.id,
        action_type="DELETE",
        entity_type="site.template",
        entity_id=template.id,
        previous_value={"name": template.name},
    )
    db.session.delete(template)
    db.session.commit()
    logger.info("Deleted template %d", template_id)


def duplicate_template(
    caller: Caller, template_id: int, name: str | None = None
) -> Template:
    """
    Copy a visible template into a new private template owned by the caller.

    Usage counters and rating start from zero on the copy.
    """
    require_role(caller, ROLE_OWNER, ROLE_ADMIN)
    source = get_template(caller, template_id)

    new_name = (name or f"{source.name} (copia)").strip()
    _validate_fields({"name": new_name}, partial=True)
    _ensure_unique_name(caller.id, new_name)

    copy = Template(
        owner_id=caller.id,
        name=new_name,
        description=source.description,
        category=source.category,
        business_type=source.business_type,
        is_public=False,
        is_default=False,
        is_premium=False,
        colors=dict(source.colors or {}),
        typography=dict(source.typography or {}),
        sections=[dict(s) for s in (source.sections or [])],
    )
    db.session.add(copy)
    db.session.flush()

    audit_service.log_change(
        user_id=caller.id,
        action_type="CREATE",
        entity_type="site.template",
        entity_id=copy.id,
        new_value={"name": new_name, "duplicated_from": source.id},
    )
    db.session.commit()
    return copy


def rate_template(caller: Caller, template_id: int, rating: Any) -> Template:
    """Fold a 1–5 rating into the template's running average."""
    require_role(caller, ROLE_OWNER, ROLE_ADMIN, ROLE_CLIENT)
    template = get_template(caller, template_id)

    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        raise ValidationError.for_field("rating", "Rating must be a number from 1 to 5.")
    if not 1 <= rating <= 5:
        raise ValidationError.for_field("rating", "Rating must be a number from 1 to 5.")

    previous = {"rating": template.rating, "review_count": template.review_count}
    total = (template.rating or 0.0) * template.review_count + float(rating)
    template.review_count += 1
    template.rating = total / template.review_count

    audit_service.log_change(
        user_id=caller.id,
        action_type="UPDATE",
        entity_type="site.template",
        entity_id=template.id,
        previous_value=previous,
        new_value={
            "rating": template.rating,
            "review_count": template.review_count,
            "score": rating,
        },
    )
    db.session.commit()
    return template


# -- System templates ------------------------------------------------------


def ensure_universal_template() -> tuple[Template, bool]:
    """
    Make sure the universal default template exists.

    Returns:
        ``(template, created)``.
    """
    template = Template.query.filter(
        Template.owner_id.is_(None),
        Template.name == UNIVERSAL_TEMPLATE_NAME,
    ).first()
    if template is not None:
        return template, False

    template = Template(
        owner_id=None,
        name=UNIVERSAL_TEMPLATE_NAME,
        description="Plantilla base usada cuando no se elige otra.",
        category="modern",
        business_type=None,
        is_public=True,
        is_default=True,
        is_active=True,
        colors=dict(DEFAULT_TEMPLATE_COLORS),
        typography={"heading": "Poppins", "body": "Inter"},
        sections=[dict(s) for s in DEFAULT_TEMPLATE_SECTIONS],
    )
    db.session.add(template)
    db.session.flush()
    audit_service.log_change(
        user_id=None,
        action_type="CREATE",
        entity_type="site.template",
        entity_id=template.id,
        new_value={"name": template.name, "system": True},
    )
    db.session.commit()
    logger.info("Seeded universal template (id=%d)", template.id)
    return template, True


def create_system_default_template(
    caller: Caller, business_type: str | None = None
) -> tuple[Template, bool]:
    """
    Admin-only: create the default system template for a business type
    (or the universal one when ``business_type`` is None). Idempotent.
    """
    require_role(caller, ROLE_ADMIN)
    if business_type is None:
        return ensure_universal_template()
    if business_type not in BUSINESS_CATEGORIES:
        raise ValidationError.for_field(
            "business_type",
            f"Business type must be one of: {', '.join(BUSINESS_CATEGORIES)}.",
        )

    existing = Template.query.filter(
        Template.owner_id.is_(None),
        Template.is_default == True,  # noqa: E712  pylint: disable=singleton-comparison
        Template.business_type == business_type,
    ).first()
    if existing is not None:
        return existing, False

    template = Template(
        owner_id=None,
        name=f"{UNIVERSAL_TEMPLATE_NAME} {business_type}",
        category="professional",
        business_type=business_type,
        is_public=True,
        is_default=True,
        colors=dict(DEFAULT_TEMPLATE_COLORS),
        sections=[dict(s) for s in DEFAULT_TEMPLATE_SECTIONS],
    )
    db.session.add(template)
    db.session.flush()
    audit_service.log_change(
        user_id=caller.id,
        action_type="CREATE",
        entity_type="site.template",
        entity_id=template.id,
        new_value={"name": template.name, "system": True},
    )
    db.session.commit()
    return template, True
