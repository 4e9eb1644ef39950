"""
Routes for the catalog blueprint — a business's services.
"""

from flask import request
from flask_login import login_required

from app.blueprints.catalog import bp
from app.decorators import current_caller, json_body, ok
from app.services import catalog_service


@bp.route("/businesses/<int:business_id>/services", methods=["GET"])
def list_services(business_id):
    """
    Services of a business. ``?include_inactive=1`` also returns hidden
    and soft-deleted services to the business's managers.
    """
    services = catalog_service.list_services(
        current_caller(),
        business_id,
        include_inactive=request.args.get("include_inactive", "0") == "1",
    )
    return ok([service.to_dict() for service in services])


@bp.route("/businesses/<int:business_id>/services", methods=["POST"])
@login_required
def create_service(business_id):
    service = catalog_service.create_service(current_caller(), business_id, json_body())
    return ok(service.to_dict(), 201)


@bp.route("/services/<int:service_id>", methods=["GET"])
def get_service(service_id):
    return ok(catalog_service.get_service(current_caller(), service_id).to_dict())


@bp.route("/services/<int:service_id>", methods=["PATCH"])
@login_required
def update_service(service_id):
    service = catalog_service.update_service(current_caller(), service_id, json_body())
    return ok(service.to_dict())


@bp.route("/services/<int:service_id>/active", methods=["POST"])
@login_required
def set_active(service_id):
    service = catalog_service.set_service_active(
        current_caller(), service_id, bool(json_body().get("is_active", True))
    )
    return ok(service.to_dict())


@bp.route("/services/<int:service_id>", methods=["DELETE"])
@login_required
def delete_service(service_id):
    result = catalog_service.delete_service(current_caller(), service_id)
    return ok(result.to_dict())
