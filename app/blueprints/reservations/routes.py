"""
Routes for the reservations blueprint.

``POST /reservations`` is open to anonymous guests; every other route
needs a session. Who may see or change which reservation is decided in
the reservation service.
"""

from flask import request
from flask_login import login_required

from app.blueprints.reservations import bp
from app.decorators import current_caller, json_body, ok, role_required
from app.services import reservation_service
from app.utils import pagination_dict


@bp.route("", methods=["POST"])
def create():
    reservation = reservation_service.create_reservation(current_caller(), json_body())
    return ok(reservation.to_dict(), 201)


@bp.route("", methods=["GET"])
@login_required
@role_required("owner", "admin")
def list_all():
    """Staff listing with business/service/status/date filters."""
    filters = {
        key: request.args.get(key)
        for key in ("business_id", "service_id", "status", "date_from", "date_to")
        if request.args.get(key)
    }
    page = reservation_service.list_reservations(
        current_caller(),
        filters,
        page=request.args.get("page", 1),
        per_page=request.args.get("per_page"),
    )
    return ok(
        [reservation.to_dict() for reservation in page.items],
        pagination=pagination_dict(page),
    )


@bp.route("/mine", methods=["GET"])
@login_required
@role_required("client")
def list_mine():
    page = reservation_service.list_my_reservations(
        current_caller(),
        status=request.args.get("status"),
        page=request.args.get("page", 1),
        per_page=request.args.get("per_page"),
    )
    return ok(
        [reservation.to_dict() for reservation in page.items],
        pagination=pagination_dict(page),
    )


@bp.route("/stats", methods=["GET"])
@login_required
@role_required("owner", "admin")
def stats():
    business_id = request.args.get("business_id", type=int)
    return ok(reservation_service.get_reservation_stats(current_caller(), business_id))


@bp.route("/<int:reservation_id>", methods=["GET"])
@login_required
def get(reservation_id):
    reservation = reservation_service.get_reservation(current_caller(), reservation_id)
    return ok(reservation.to_dict())


@bp.route("/<int:reservation_id>/status", methods=["POST"])
@login_required
def update_status(reservation_id):
    data = json_body()
    reservation = reservation_service.update_status(
        current_caller(), reservation_id, data.get("status"), data.get("reason")
    )
    return ok(reservation.to_dict())


@bp.route("/<int:reservation_id>/cancel", methods=["POST"])
@login_required
def cancel(reservation_id):
    reservation = reservation_service.cancel_reservation(
        current_caller(), reservation_id, json_body().get("reason")
    )
    return ok(reservation.to_dict())
