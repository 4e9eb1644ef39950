"""
Routes for the templates blueprint.
"""

from flask import request
from flask_login import login_required

from app.blueprints.templates import bp
from app.decorators import current_caller, json_body, ok, role_required
from app.services import template_service
from app.utils import pagination_dict


@bp.route("", methods=["GET"])
def list_public():
    page = template_service.list_public_templates(
        category=request.args.get("category"),
        business_type=request.args.get("business_type"),
        sort=request.args.get("sort", "popular"),
        page=request.args.get("page", 1),
        per_page=request.args.get("per_page"),
    )
    return ok(
        [template.to_dict() for template in page.items],
        pagination=pagination_dict(page),
    )


@bp.route("", methods=["POST"])
@login_required
@role_required("owner", "admin")
def create():
    template = template_service.create_template(current_caller(), json_body())
    return ok(template.to_dict(), 201)


@bp.route("/mine", methods=["GET"])
@login_required
@role_required("owner", "admin")
def list_mine():
    templates = template_service.list_my_templates(current_caller())
    return ok([template.to_dict() for template in templates])


@bp.route("/default", methods=["GET"])
def get_default():
    template = template_service.get_default_template(request.args.get("business_type"))
    return ok(template.to_dict())


@bp.route("/resolve", methods=["POST"])
@login_required
@role_required("owner", "admin")
def resolve():
    """Preview which template a new business would get."""
    template_id = template_service.resolve_template(
        current_caller(), json_body().get("template_id")
    )
    return ok({"template_id": template_id})


@bp.route("/system-default", methods=["POST"])
@login_required
@role_required("admin")
def create_system_default():
    template, created = template_service.create_system_default_template(
        current_caller(), json_body().get("business_type")
    )
    return ok(template.to_dict(), 201 if created else 200, created=created)


@bp.route("/<int:template_id>", methods=["GET"])
def get(template_id):
    return ok(template_service.get_template(current_caller(), template_id).to_dict())


@bp.route("/<int:template_id>", methods=["PATCH"])
@login_required
def update(template_id):
    template = template_service.update_template(
        current_caller(), template_id, json_body()
    )
    return ok(template.to_dict())


@bp.route("/<int:template_id>", methods=["DELETE"])
@login_required
def delete(template_id):
    template_service.delete_template(current_caller(), template_id)
    return ok()


@bp.route("/<int:template_id>/duplicate", methods=["POST"])
@login_required
def duplicate(template_id):
    template = template_service.duplicate_template(
        current_caller(), template_id, json_body().get("name")
    )
    return ok(template.to_dict(), 201)


@bp.route("/<int:template_id>/rating", methods=["POST"])
@login_required
def rate(template_id):
    template = template_service.rate_template(
        current_caller(), template_id, json_body().get("rating")
    )
    return ok(template.to_dict())
