"""
Routes for the businesses blueprint.

Public reads (listing, detail, by slug) need no session; everything
that changes a business needs a signed-in owner or admin. Ownership is
checked by the business service.
"""

from flask import request
from flask_login import login_required

from app.blueprints.businesses import bp
from app.decorators import current_caller, json_body, ok, role_required
from app.services import business_service
from app.utils import pagination_dict


@bp.route("", methods=["GET"])
def list_public():
    """Published businesses, filterable by ``category`` and ``city``."""
    page = business_service.list_public_businesses(
        category=request.args.get("category"),
        city=request.args.get("city"),
        sort=request.args.get("sort", "newest"),
        page=request.args.get("page", 1),
        per_page=request.args.get("per_page"),
    )
    return ok(
        [business.to_dict() for business in page.items],
        pagination=pagination_dict(page),
    )


@bp.route("", methods=["POST"])
@login_required
@role_required("owner")
def create():
    business = business_service.create_business(current_caller(), json_body())
    return ok(business.to_dict(), 201)


@bp.route("/mine", methods=["GET"])
@login_required
@role_required("owner", "admin")
def list_mine():
    """The caller's businesses (every business for admins)."""
    page = business_service.list_businesses_for_caller(
        current_caller(),
        page=request.args.get("page", 1),
        per_page=request.args.get("per_page"),
    )
    return ok(
        [business.to_dict() for business in page.items],
        pagination=pagination_dict(page),
    )


@bp.route("/slug/<slug>", methods=["GET"])
def get_by_slug(slug):
    return ok(business_service.get_business_by_slug(slug).to_dict())


@bp.route("/<int:business_id>", methods=["GET"])
def get(business_id):
    return ok(business_service.get_business(current_caller(), business_id).to_dict())


@bp.route("/<int:business_id>", methods=["PATCH"])
@login_required
def update(business_id):
    business = business_service.update_business(
        current_caller(), business_id, json_body()
    )
    return ok(business.to_dict())


@bp.route("/<int:business_id>/status", methods=["POST"])
@login_required
def change_status(business_id):
    business = business_service.change_status(
        current_caller(), business_id, json_body().get("status")
    )
    return ok(business.to_dict())


@bp.route("/<int:business_id>", methods=["DELETE"])
@login_required
def delete(business_id):
    result = business_service.delete_business(current_caller(), business_id)
    return ok(result.to_dict())


# =========================================================================
# Media
# =========================================================================


@bp.route("/<int:business_id>/media", methods=["POST"])
@login_required
def add_media(business_id):
    """Attach an already-uploaded file (logo, cover or gallery image)."""
    data = json_body()
    asset = business_service.add_media_asset(
        current_caller(),
        business_id,
        kind=data.get("kind"),
        storage_key=data.get("storage_key") or "",
        url=data.get("url"),
        caption=data.get("caption"),
    )
    return ok(asset.to_dict(), 201)


@bp.route("/<int:business_id>/media/<int:asset_id>", methods=["DELETE"])
@login_required
def remove_media(business_id, asset_id):
    result = business_service.remove_media_asset(current_caller(), business_id, asset_id)
    return ok(result.to_dict())
