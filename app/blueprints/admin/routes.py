"""
Routes for the admin blueprint — user management and audit logs.

All routes require the 'admin' role.
"""

from flask import request
from flask_login import login_required

from app.blueprints.admin import bp
from app.decorators import current_caller, json_body, ok, role_required
from app.services import audit_service, user_service
from app.utils import clamp_per_page, pagination_dict


# =========================================================================
# User Management
# =========================================================================


@bp.route("/users")
@login_required
@role_required("admin")
def list_users():
    """List users, optionally including deactivated ones."""
    page = user_service.get_all_users(
        current_caller(),
        include_inactive=request.args.get("show_inactive", "0") == "1",
        role=request.args.get("role"),
        page=request.args.get("page", 1, type=int),
        per_page=clamp_per_page(request.args.get("per_page"), default=25),
    )
    return ok([user.to_dict() for user in page.items], pagination=pagination_dict(page))


@bp.route("/users/<int:user_id>/role", methods=["PATCH"])
@login_required
@role_required("admin")
def change_role(user_id):
    user = user_service.change_role(current_caller(), user_id, json_body().get("role"))
    return ok(user.to_dict())


@bp.route("/users/<int:user_id>/deactivate", methods=["POST"])
@login_required
@role_required("admin")
def deactivate_user(user_id):
    return ok(user_service.deactivate_user(current_caller(), user_id).to_dict())


@bp.route("/users/<int:user_id>/reactivate", methods=["POST"])
@login_required
@role_required("admin")
def reactivate_user(user_id):
    return ok(user_service.reactivate_user(current_caller(), user_id).to_dict())


@bp.route("/users/<int:user_id>/unlock", methods=["POST"])
@login_required
@role_required("admin")
def unlock_user(user_id):
    return ok(user_service.unlock_user(current_caller(), user_id).to_dict())


# =========================================================================
# Audit Log
# =========================================================================


@bp.route("/audit-logs")
@login_required
@role_required("admin")
def audit_logs():
    """Paginated audit trail with optional action/entity/user filters."""
    logs = audit_service.get_audit_logs(
        page=request.args.get("page", 1, type=int),
        per_page=clamp_per_page(request.args.get("per_page"), default=50),
        user_id=request.args.get("user_id", type=int),
        action_type=request.args.get("action_type") or None,
        entity_type=request.args.get("entity_type") or None,
    )
    return ok(
        [audit_service.audit_log_to_dict(entry) for entry in logs.items],
        pagination=pagination_dict(logs),
    )
